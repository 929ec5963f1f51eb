import math

import pytest
from conftest import FakeAgentProvider, reply

from clinical_knowledge.errors import OracleMalformed, OracleUnavailable
from clinical_knowledge.oracle import OracleClient, parse_json_reply
from clinical_knowledge.oracle.client import strip_code_fences


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences("```\n[1, 2]\n```") == "[1, 2]"
    assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'


def test_parse_json_reply_extracts_object_from_prose():
    text = 'Here are the updates: {"symptoms": {"cough": {"onset": "2 days"}}} Hope that helps.'

    with pytest.raises(ValueError):
        parse_json_reply(text)
    assert parse_json_reply(text, extract_object=True) == {"symptoms": {"cough": {"onset": "2 days"}}}


def test_parse_json_reply_rejects_empty():
    with pytest.raises(ValueError):
        parse_json_reply("   ")


async def test_diagnoses_are_validated(provider: FakeAgentProvider, oracle: OracleClient):
    provider.set(
        "diagnoses",
        "```json\n"
        + reply(
            {
                "diagnoses": [
                    {"diagnosis": "Migraine", "confidence": 0.7, "reasoning": "aura", "relates_to_existing": "null"},
                    {"diagnosis": "", "confidence": 0.5},
                    {"confidence": 0.5},
                    {"diagnosis": "Sinusitis", "confidence": "high"},
                ],
                "preserve_existing": True,
            }
        )
        + "\n```",
    )

    batch = await oracle.analyze_diagnoses("headache for days", [])

    assert [c.diagnosis for c in batch.candidates] == ["Migraine", "Sinusitis"]
    assert batch.candidates[0].relates_to_existing is None
    assert math.isnan(batch.candidates[1].confidence)
    assert batch.dropped == 2
    assert batch.preserve_existing is True
    assert batch.has_relation_info is False


async def test_existing_diagnoses_go_into_the_prompt(provider, oracle, key):
    from clinical_knowledge.storage.models import DiagnosisRecord

    agent = provider.set("diagnoses", reply({"diagnoses": []}))
    existing = [DiagnosisRecord(diagnosis="Migraine", confidence=0.75, reasoning="aura")]

    await oracle.analyze_diagnoses("headache", existing, preservation_threshold=0.7)

    assert '"Migraine" (confidence: 75%' in agent.prompts[0]
    assert 'MUST preserve): "Migraine"' in agent.prompts[0]


@pytest.mark.parametrize(
    "text",
    ["not json at all", reply({"diagnoses": "Migraine"}), reply(["Migraine"])],
)
async def test_malformed_diagnosis_reply(provider, oracle, text):
    provider.set("diagnoses", text)

    with pytest.raises(OracleMalformed):
        await oracle.analyze_diagnoses("headache", [])


async def test_solutions_accept_array_or_wrapped(provider, oracle):
    item = {"solution": "Walk daily", "category": "exercise", "confidence": 0.5, "reasoning": "r"}
    provider.set("solutions", reply([item]), reply({"solutions": [item]}))

    first = await oracle.analyze_solutions("Patient: tired", [])
    second = await oracle.analyze_solutions("Patient: tired", [])

    assert first.items == [item]
    assert second.items == [item]


async def test_memory_reply_must_be_an_object(provider, oracle):
    provider.set("memory", reply(["asthma"]))

    with pytest.raises(OracleMalformed):
        await oracle.analyze_memory("Patient: I have asthma", {})


async def test_memory_reply_with_surrounding_prose(provider, oracle):
    provider.set("memory", 'Sure! {"medical_history": ["asthma"]}')

    update = await oracle.analyze_memory("Patient: I have asthma", {})

    assert update.updates == {"medical_history": ["asthma"]}


async def test_transport_error_is_unavailable(provider, oracle):
    provider.set("completeness", error=ConnectionError("connection reset"))

    with pytest.raises(OracleUnavailable) as exc:
        await oracle.judge_completeness("Q: where? A: head", 4)
    assert exc.value.retryable is True


async def test_timeout_is_unavailable(provider):
    provider.set("topics", reply({"topics": []}), delay=1.0)
    oracle = OracleClient(provider, timeout_seconds=0.05)

    with pytest.raises(OracleUnavailable):
        await oracle.extract_topics("Q: where? A: head")


async def test_reply_without_text_is_malformed(provider, oracle):
    provider.set("topics", None)

    with pytest.raises(OracleMalformed):
        await oracle.extract_topics("Q: where? A: head")


async def test_topics_parsed(provider, oracle):
    provider.set(
        "topics",
        reply({"topics": [{"topic": "Migraine", "confidence": 0.95, "category": "conditions"}, {"topic": " "}]}),
    )

    batch = await oracle.extract_topics("Q: where? A: head")

    assert [t.topic for t in batch.candidates] == ["Migraine"]
    assert batch.candidates[0].reasoning == "Based on conversation responses"
    assert batch.dropped == 1
