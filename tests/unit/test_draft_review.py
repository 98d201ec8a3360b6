"""Unit tests for DraftReviewWorkflow."""

import asyncio

import pytest

from voiceintake.errors import IntakeValidationError, InvalidTransitionError
from voiceintake.models.draft import DraftTranscript, ReviewState
from voiceintake.models.events import TOPIC_DRAFT_STATE
from voiceintake.publisher import EventPublisher
from voiceintake.review.workflow import DraftReviewWorkflow


class RecordingSubmitter:
    """Submit callback that records answers and can fail or inspect the workflow mid-submit."""

    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error
        self.answers = []
        self.during_submit = None

    async def __call__(self, text):
        self.answers.append(text)
        if self.during_submit is not None:
            self.during_submit()
        if self.error is not None:
            raise self.error
        return self.result


def reviewing(text="I have had a cough for a week", submitter=None, publisher=None):
    workflow = DraftReviewWorkflow(DraftTranscript(), submitter, publisher)
    workflow.set_candidate(text)
    return workflow


@pytest.mark.unit
class TestDraftReviewWorkflow:
    """Test cases for DraftReviewWorkflow."""

    def test_candidate_enters_review(self):
        workflow = reviewing()

        assert workflow.state == ReviewState.REVIEWING
        assert workflow.text == "I have had a cough for a week"

    def test_empty_candidate_stays_capturing(self):
        workflow = DraftReviewWorkflow(DraftTranscript())
        workflow.set_candidate("")

        assert workflow.state == ReviewState.CAPTURING

    def test_accept_and_submit(self):
        submitter = RecordingSubmitter()
        workflow = reviewing(submitter=submitter)

        text = asyncio.run(workflow.accept(auto_submit=True))

        assert text == "I have had a cough for a week"
        assert submitter.answers == [text]
        assert workflow.state == ReviewState.CAPTURING
        assert workflow.text == ""
        assert not workflow.is_submitting

    def test_accept_without_submit_stages_text(self):
        submitter = RecordingSubmitter()
        workflow = reviewing(submitter=submitter)

        asyncio.run(workflow.accept(auto_submit=False))

        assert workflow.staged_text == "I have had a cough for a week"
        assert workflow.state == ReviewState.CAPTURING
        assert submitter.answers == []

        asyncio.run(workflow.submit_staged())

        assert submitter.answers == ["I have had a cough for a week"]
        assert workflow.staged_text is None

    def test_submit_staged_without_text(self):
        workflow = DraftReviewWorkflow(DraftTranscript(), RecordingSubmitter())

        with pytest.raises(InvalidTransitionError):
            asyncio.run(workflow.submit_staged())

    def test_accept_requires_a_draft(self):
        workflow = DraftReviewWorkflow(DraftTranscript(), RecordingSubmitter())

        with pytest.raises(InvalidTransitionError):
            asyncio.run(workflow.accept(auto_submit=True))

    def test_rejected_submission_restores_draft(self):
        submitter = RecordingSubmitter(error=IntakeValidationError("too long", ["content"]))
        workflow = reviewing(submitter=submitter)

        with pytest.raises(IntakeValidationError):
            asyncio.run(workflow.accept(auto_submit=True))

        assert workflow.state == ReviewState.REVIEWING
        assert workflow.text == "I have had a cough for a week"
        assert not workflow.is_submitting

    def test_mutations_are_rejected_while_submitting(self):
        submitter = RecordingSubmitter()
        workflow = reviewing(submitter=submitter)
        rejected = []

        def try_actions():
            assert workflow.is_submitting
            for action in (workflow.redo, workflow.edit, lambda: workflow.set_candidate("again")):
                try:
                    action()
                except InvalidTransitionError:
                    rejected.append(action)

        submitter.during_submit = try_actions
        asyncio.run(workflow.accept(auto_submit=True))

        assert len(rejected) == 3

    def test_second_accept_while_submitting_is_rejected(self):
        async def run():
            release = asyncio.Event()
            answers = []

            async def slow_submit(text):
                answers.append(text)
                await release.wait()
                return True

            workflow = reviewing(submitter=slow_submit)
            first = asyncio.ensure_future(workflow.accept(auto_submit=True))
            await asyncio.sleep(0)
            workflow.restore("sneaky second answer")
            with pytest.raises(InvalidTransitionError):
                await workflow.accept(auto_submit=True)
            release.set()
            await first
            return answers

        assert asyncio.run(run()) == ["I have had a cough for a week"]

    def test_edit_cycle(self):
        workflow = reviewing()

        workflow.edit()
        assert workflow.state == ReviewState.EDITING
        workflow.update_text("I have had a dry cough for a week")
        workflow.finish_edit()

        assert workflow.state == ReviewState.REVIEWING
        assert workflow.text == "I have had a dry cough for a week"
        assert workflow.draft.raw_buffer == workflow.text

    def test_finish_edit_with_replacement(self):
        workflow = reviewing()
        workflow.edit()

        workflow.finish_edit("  Only at night  ")

        assert workflow.text == "Only at night"

    def test_finish_edit_with_empty_text_discards(self):
        workflow = reviewing()
        workflow.edit()

        workflow.finish_edit("")

        assert workflow.state == ReviewState.CAPTURING

    def test_edit_requires_review(self):
        workflow = DraftReviewWorkflow(DraftTranscript())

        with pytest.raises(InvalidTransitionError):
            workflow.edit()
        with pytest.raises(InvalidTransitionError):
            workflow.update_text("x")

    def test_redo_discards_draft(self):
        workflow = reviewing()

        workflow.redo()

        assert workflow.state == ReviewState.CAPTURING
        assert workflow.text == ""
        assert workflow.draft.raw_buffer == ""

    def test_events_are_published(self, event_recorder):
        events = event_recorder(TOPIC_DRAFT_STATE)
        workflow = reviewing(submitter=RecordingSubmitter(), publisher=EventPublisher(TOPIC_DRAFT_STATE))

        asyncio.run(workflow.accept(auto_submit=True))

        assert [(e.review_state, e.submitting) for e in events.events] == [
            ("reviewing", False),
            ("capturing", True),
            ("capturing", False),
        ]
