"""End-to-end interview flows through IntakeService with scripted collaborators."""

import asyncio

import pytest

from conftest import FakeProtocol, FakeRecognizer, question, summary, wait_for
from voiceintake.capture.continuous import ContinuousCaptureBackend
from voiceintake.config import IntakeConfig
from voiceintake.errors import InvalidTransitionError, ProtocolError
from voiceintake.interview.messages import CLOSING_MESSAGE, FINAL_COMMENTS_PROMPT
from voiceintake.models.draft import ReviewState
from voiceintake.models.events import TOPIC_INTERVIEW_COUNTDOWN
from voiceintake.models.interview import InterviewStatus
from voiceintake.services.intake_service import IntakeService


@pytest.fixture
def fast_config(temp_data_dir):
    return IntakeConfig.from_dict({
        "interview": {
            "idle_pause_seconds": 0.01,
            "countdown_seconds": 2,
            "countdown_tick_seconds": 0.01,
        },
        "cleanup": {"enabled": False},
        "storage": {"data_directory": temp_data_dir},
    })


def voice_service(config, script):
    protocol = FakeProtocol(script)
    recognizer = FakeRecognizer()
    service = IntakeService(config, protocol=protocol, capture_backend=ContinuousCaptureBackend(recognizer))
    return service, protocol, recognizer


async def speak(service, recognizer, *finals, interim=None):
    """Hold to talk, say ``finals`` (after an optional interim), and release."""
    await service.capture.start()
    if interim is not None:
        recognizer.interim(interim)
    for text in finals:
        recognizer.final(text)
    return await service.capture.stop()


@pytest.mark.integration
class TestInterviewFlow:
    """Interview scenarios across capture, review and the turn controller."""

    def test_start_asks_first_question(self, fast_config, valid_intake):
        service, protocol, _ = voice_service(fast_config, [question("What brings you in?")])

        asyncio.run(service.start_interview(valid_intake))

        transcript = service.interview.session.transcript
        assert service.interview.status == InterviewStatus.AWAITING_PATIENT
        assert len(transcript) == 1
        assert transcript[0].role == "assistant"
        assert len(protocol.calls) == 1

    def test_spoken_answer_is_reviewed_and_submitted(self, fast_config, valid_intake):
        async def run():
            service, protocol, recognizer = voice_service(fast_config, [question("Q1"), question("Q2")])
            await service.start_interview(valid_intake)

            await speak(service, recognizer, "follow up", interim="follow")
            draft = service.review.draft
            reviewed = (draft.committed_text, draft.interim, service.review.state)

            protocol.gate = asyncio.Event()
            submit = asyncio.ensure_future(service.review.accept(auto_submit=True))
            await wait_for(lambda: len(protocol.calls) == 2)
            in_flight = (service.interview.status, service.interview.session.last_message)
            protocol.gate.set()
            await submit
            await service.shutdown()
            return service, reviewed, in_flight

        service, reviewed, in_flight = asyncio.run(run())

        assert reviewed == ("follow up", "", ReviewState.REVIEWING)
        status, last_message = in_flight
        assert status == InterviewStatus.AWAITING_AI
        assert last_message.role == "patient"
        assert last_message.content == "follow up"
        assert service.interview.status == InterviewStatus.AWAITING_PATIENT

    def test_failed_submission_restores_draft(self, fast_config, valid_intake):
        async def run():
            service, _, recognizer = voice_service(
                fast_config, [question("Q1"), ProtocolError("Upstream failed", 502)])
            await service.start_interview(valid_intake)
            length_before = len(service.interview.session.transcript)

            await speak(service, recognizer, "follow up")
            kept = await service.review.accept(auto_submit=True)
            await service.shutdown()
            return service, length_before, kept

        service, length_before, kept = asyncio.run(run())

        assert kept == "follow up"
        assert len(service.interview.session.transcript) == length_before
        assert service.review.state == ReviewState.REVIEWING
        assert service.review.text == "follow up"
        assert service.interview.status == InterviewStatus.AWAITING_PATIENT
        assert service.interview.session.error == "Upstream failed"
        assert not service.review.is_submitting

    def test_abandoned_pause_ends_with_local_summary(self, fast_config, valid_intake, event_recorder):
        countdown = event_recorder(TOPIC_INTERVIEW_COUNTDOWN)

        async def run():
            service, protocol, recognizer = voice_service(fast_config, [question("Q1"), ProtocolError()])
            await service.start_interview(valid_intake)
            await service.capture.start()
            recognizer.interim("I was going to")

            service.interview.pause()
            capture_cancelled = service.capture.session is None
            await wait_for(lambda: service.interview.status == InterviewStatus.COMPLETE)
            await service.shutdown()
            return service, protocol, capture_cancelled

        service, protocol, capture_cancelled = asyncio.run(run())

        session = service.interview.session
        assert capture_cancelled
        assert session.status == InterviewStatus.COMPLETE
        assert session.summary is not None
        assert session.summary_degraded
        assert "sore throat and fever" in session.summary.summary
        assert session.summary.patient_final_comments is None
        assert protocol.calls[-1]["force_summary"] is True
        assert [e.remaining_seconds for e in countdown.events] == [2, 1, 0]
        assert service.interview.timer.idle_handle is None
        assert service.interview.timer.countdown_handle is None
        assert service.file_manager.load_interview(session.session_id)["summary_degraded"] is True

    def test_resume_before_countdown_ends_keeps_interview(self, fast_config, valid_intake):
        fast_config.set("interview.countdown_seconds", 1000)

        async def run():
            service, protocol, _ = voice_service(fast_config, [question("Q1")])
            await service.start_interview(valid_intake)
            service.interview.pause()
            await wait_for(lambda: service.interview.timer.countdown_handle is not None)
            await service.interview.resume()
            await asyncio.sleep(0.05)
            await service.shutdown()
            return service, protocol

        service, protocol = asyncio.run(run())

        assert service.interview.status == InterviewStatus.AWAITING_PATIENT
        assert service.interview.timer.remaining_seconds is None
        assert len(protocol.calls) == 1

    def test_final_comments_complete_without_another_request(self, fast_config, valid_intake):
        async def run():
            service, protocol, _ = voice_service(fast_config, [question("Q1"), summary()])
            await service.start_interview(valid_intake)
            await service.submit_typed_answer("Two days, with a fever.")
            prompt = service.interview.session.last_message.content
            await service.submit_typed_answer("no questions")
            await service.shutdown()
            return service, protocol, prompt

        service, protocol, prompt = asyncio.run(run())

        session = service.interview.session
        assert prompt == FINAL_COMMENTS_PROMPT
        assert any(m.content == CLOSING_MESSAGE for m in session.transcript)
        assert session.status == InterviewStatus.COMPLETE
        assert session.summary.patient_final_comments == "no questions"
        assert len(protocol.calls) == 2
        assert service.file_manager.list_sessions() == [session.session_id]

    def test_capture_refused_outside_patient_turn(self, fast_config, valid_intake):
        async def run():
            service, _, _ = voice_service(fast_config, [question("Q1")])
            with pytest.raises(InvalidTransitionError):
                await service.capture.start()
            await service.start_interview(valid_intake)
            service.interview.pause()
            with pytest.raises(InvalidTransitionError):
                await service.capture.start()
            await service.shutdown()

        asyncio.run(run())

    def test_typed_answer_discards_voice_draft(self, fast_config, valid_intake):
        async def run():
            service, protocol, recognizer = voice_service(fast_config, [question("Q1"), question("Q2")])
            await service.start_interview(valid_intake)
            await speak(service, recognizer, "spoken draft")
            await service.submit_typed_answer("typed answer")
            await service.shutdown()
            return service, protocol

        service, protocol = asyncio.run(run())

        assert service.review.state == ReviewState.CAPTURING
        assert protocol.calls[1]["transcript"][-1].content == "typed answer"

    def test_manual_end_goes_through_final_comments(self, fast_config, valid_intake):
        async def run():
            service, protocol, _ = voice_service(fast_config, [question("Q1"), summary()])
            await service.start_interview(valid_intake)
            await service.end_interview()
            status = service.interview.status
            await service.submit_typed_answer("no")
            await service.shutdown()
            return service, protocol, status

        service, protocol, status_after_end = asyncio.run(run())

        assert status_after_end == InterviewStatus.AWAITING_PATIENT
        assert service.interview.status == InterviewStatus.COMPLETE
        assert protocol.calls[-1]["force_summary"] is True


@pytest.mark.integration
class TestMockInterview:
    """Full interview against the offline generator."""

    def test_mock_interview_runs_to_completion(self, temp_data_dir, valid_intake):
        config = IntakeConfig.from_dict({
            "interview": {"mock": True},
            "storage": {"data_directory": temp_data_dir},
        })

        async def run():
            service = IntakeService(config)
            await service.start_interview(valid_intake)
            answers = 0
            while not service.interview.session.awaiting_final_comments:
                answers += 1
                await service.submit_typed_answer(f"Answer number {answers}.")
            await service.submit_typed_answer("No further questions.")
            await service.shutdown()
            return service, answers

        service, answers = asyncio.run(run())

        session = service.interview.session
        assert answers == 7
        assert session.status == InterviewStatus.COMPLETE
        assert not session.summary_degraded
        assert service.capture is None
        saved = service.file_manager.load_interview(session.session_id)
        assert saved["summary"]["patientFinalQuestionsComments"] == "No further questions."
