from __future__ import annotations

import asyncio

from bridge.attempts import AuthStage
from bridge.auth import IdentityVerifier
from bridge.coordinator import FALLBACK_FIRST_MESSAGE, AuthDecision


def test_unknown_identifier_is_retried_then_locked_out(voice_bridge):
    decisions = [asyncio.run(voice_bridge.check_identifier("99999999")) for _ in range(3)]

    assert decisions == [AuthDecision.RETRY, AuthDecision.RETRY, AuthDecision.LOCKED_OUT]
    assert voice_bridge.attempts.count("99999999", AuthStage.IDENTIFIER) == 0


def test_known_identifier_resets_counter(voice_bridge, patient):
    voice_bridge.attempts.record_attempt(patient.user_id, AuthStage.IDENTIFIER)

    assert asyncio.run(voice_bridge.check_identifier(patient.user_id)) is AuthDecision.ACCEPTED
    assert voice_bridge.attempts.count(patient.user_id, AuthStage.IDENTIFIER) == 0


def test_three_bad_passwords_lock_out_and_reset(voice_bridge, patient):
    checks = [asyncio.run(voice_bridge.check_credential("CA1", patient.user_id, "000000")) for _ in range(3)]

    assert [check.decision for check in checks] == [
        AuthDecision.RETRY,
        AuthDecision.RETRY,
        AuthDecision.LOCKED_OUT,
    ]
    assert all(check.profile is None for check in checks)
    assert voice_bridge.attempts.count(patient.user_id, AuthStage.CREDENTIAL) == 0
    assert "CA1" not in voice_bridge.registry


def test_success_on_second_attempt_resets_and_binds_session(voice_bridge, patient):
    asyncio.run(voice_bridge.check_credential("CA1", patient.user_id, "000000"))
    assert voice_bridge.attempts.count(patient.user_id, AuthStage.CREDENTIAL) == 1

    check = asyncio.run(voice_bridge.check_credential("CA1", patient.user_id, patient.password))

    assert check.decision is AuthDecision.ACCEPTED
    assert check.profile == patient
    assert voice_bridge.attempts.count(patient.user_id, AuthStage.CREDENTIAL) == 0

    session = asyncio.run(voice_bridge.registry.get("CA1"))
    assert session is not None
    assert session.profile == patient
    assert session.caller_number == patient.phone_number


def test_second_patient_on_same_call_is_hung_up(voice_bridge, fake_repository, patient):
    other = patient.model_copy(update={"id": 2, "user_id": "23456789", "password": "234567"})
    fake_repository.users[other.user_id] = other

    asyncio.run(voice_bridge.check_credential("CA1", patient.user_id, patient.password))
    check = asyncio.run(voice_bridge.check_credential("CA1", other.user_id, other.password))

    assert check.decision is AuthDecision.LOCKED_OUT
    assert asyncio.run(voice_bridge.registry.get("CA1")).profile == patient


def test_first_message_mentions_last_visit_without_previous_call(voice_bridge, patient):
    message = asyncio.run(voice_bridge.first_message(patient))
    assert message == (
        "Welcome back John Doe. I see your last visit was on 2024-03-15. How can I assist you today?"
    )


def test_first_message_summarizes_latest_call(voice_bridge, fake_repository, patient):
    fake_repository.calls.append((patient.id, "User: I need a refill\nAgent: I can help with that\n"))

    message = asyncio.run(voice_bridge.first_message(patient))

    assert message.startswith("Welcome back John Doe. I see your last call summary: ")
    assert '"User: I need a refill Agent: I can help with that"' in message


def test_first_message_falls_back_when_storage_fails(voice_bridge, fake_repository, patient):
    fake_repository.fail = True
    assert asyncio.run(voice_bridge.first_message(patient)) == FALLBACK_FIRST_MESSAGE


def test_verifier_treats_lookup_errors_as_no_profile(fake_repository, patient):
    fake_repository.fail = True
    verifier = IdentityVerifier(fake_repository)

    assert asyncio.run(verifier.verify(patient.user_id, patient.password)) is None
    assert asyncio.run(verifier.identifier_exists(patient.user_id)) is False


def test_verifier_requires_exact_credentials(fake_repository, patient):
    verifier = IdentityVerifier(fake_repository)

    assert asyncio.run(verifier.verify(patient.user_id, patient.password)) == patient
    assert asyncio.run(verifier.verify(patient.user_id, patient.password + " ")) is None
    assert asyncio.run(verifier.verify("", "")) is None
