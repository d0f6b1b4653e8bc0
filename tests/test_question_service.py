"""
tests/test_question_service.py — Questions, Feed & Tags Tests
===============================================================
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from conftest import create_answer, create_question, create_user, fetch_user
from stackit.database.models import ItemType, Question, VoteDirection
from stackit.errors import ForbiddenError, NotFoundError, ValidationError
from stackit.schemas import QuestionCreate, QuestionUpdate
from stackit.services import question_service
from stackit.services.acceptance_service import accept_answer
from stackit.services.vote_service import apply_vote


class TestCreateQuestion:
    def test_tags_are_normalised_and_counter_bumped(self, db_engine, asker):
        body = QuestionCreate(
            title="  Why is my loop so slow?  ",
            content="It iterates over a million items and takes forever.",
            tags=[" Python ", "performance", "PYTHON"],
        )
        q = question_service.create_question(db_engine, asker, body)

        assert q["title"] == "Why is my loop so slow?"
        assert q["tags"] == ["python", "performance"]
        assert q["short_description"] == body.content[:200]
        assert q["author"]["id"] == asker
        assert fetch_user(db_engine, asker).questions_asked == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"title": "short"},
            {"content": "too short"},
            {"tags": []},
            {"tags": ["a", "b", "c", "d", "e", "f"]},
        ],
    )
    def test_invalid_bodies_rejected(self, overrides):
        fields = {
            "title": "A perfectly reasonable title",
            "content": "Enough content to pass the minimum length.",
            "tags": ["python"],
            **overrides,
        }
        with pytest.raises(PydanticValidationError):
            QuestionCreate(**fields)


class TestGetQuestion:
    def test_each_view_is_counted(self, db_engine, question_id):
        question_service.get_question(db_engine, question_id)
        result = question_service.get_question(db_engine, question_id)
        assert result["question"]["views"] == 2

    def test_missing_question(self, db_engine):
        with pytest.raises(NotFoundError):
            question_service.get_question(db_engine, 404)

    def test_answers_accepted_first_then_by_votes(self, db_engine, asker, question_id):
        users = [create_user(db_engine, f"ans{i}") for i in range(3)]
        a0 = create_answer(db_engine, users[0], question_id)
        a1 = create_answer(db_engine, users[1], question_id)
        a2 = create_answer(db_engine, users[2], question_id)
        apply_vote(db_engine, users[0], ItemType.ANSWER, a1, VoteDirection.UP)
        accept_answer(db_engine, asker, a2)

        result = question_service.get_question(db_engine, question_id)
        assert [a["id"] for a in result["answers"]] == [a2, a1, a0]
        assert result["question"]["answer_count"] == 3

    def test_viewer_sees_own_votes(self, db_engine, voter, question_id, answer_id):
        apply_vote(db_engine, voter, ItemType.QUESTION, question_id, VoteDirection.DOWN)
        apply_vote(db_engine, voter, ItemType.ANSWER, answer_id, VoteDirection.UP)

        mine = question_service.get_question(db_engine, question_id, viewer_id=voter)["my_votes"]
        assert mine == {"question": "down", "answers": {str(answer_id): "up"}}


class TestUpdateQuestion:
    def test_author_can_edit_tags(self, db_engine, asker, question_id):
        q = question_service.update_question(
            db_engine, asker, question_id, QuestionUpdate(tags=["lists", "Algorithms"])
        )
        assert q["tags"] == ["lists", "algorithms"]

    def test_staff_can_edit(self, db_engine, admin, question_id):
        q = question_service.update_question(
            db_engine, admin, question_id, QuestionUpdate(title="Edited by a moderator")
        )
        assert q["title"] == "Edited by a moderator"

    def test_others_cannot_edit(self, db_engine, voter, question_id):
        with pytest.raises(ForbiddenError):
            question_service.update_question(
                db_engine, voter, question_id, QuestionUpdate(title="Hijacked title here")
            )

    def test_padded_short_title_is_rejected(self):
        with pytest.raises(PydanticValidationError, match="at least 10 characters"):
            QuestionUpdate(title="  x         ")

    def test_edited_title_is_stored_stripped(self, db_engine, asker, question_id):
        question_service.update_question(
            db_engine, asker, question_id, QuestionUpdate(title="   A cleaner title   ")
        )
        with Session(db_engine) as session:
            assert session.get(Question, question_id).title == "A cleaner title"


class TestListQuestions:
    @pytest.fixture
    def feed(self, db_engine, asker, answerer):
        plain = create_question(db_engine, asker, title="Plain unanswered question", tags=["go"])
        answered = create_question(db_engine, asker, title="Answered python question")
        accepted = create_question(db_engine, asker, title="Accepted python question")
        create_answer(db_engine, answerer, answered)
        accept_answer(db_engine, asker, create_answer(db_engine, answerer, accepted))
        apply_vote(db_engine, answerer, ItemType.QUESTION, answered, VoteDirection.UP)
        return {"plain": plain, "answered": answered, "accepted": accepted}

    def _ids(self, result):
        return {q["id"] for q in result["questions"]}

    def test_filters(self, db_engine, feed):
        unanswered = question_service.list_questions(db_engine, filter="unanswered")
        assert self._ids(unanswered) == {feed["plain"]}

        accepted = question_service.list_questions(db_engine, filter="accepted")
        assert self._ids(accepted) == {feed["accepted"]}

        upvoted = question_service.list_questions(db_engine, filter="upvoted")
        assert self._ids(upvoted) == {feed["answered"]}

    def test_tag_and_search(self, db_engine, feed):
        assert self._ids(question_service.list_questions(db_engine, tag="GO")) == {feed["plain"]}
        found = question_service.list_questions(db_engine, search="accepted PYTHON")
        assert self._ids(found) == {feed["accepted"]}

    def test_sort_by_votes(self, db_engine, feed):
        result = question_service.list_questions(db_engine, sort="votes")
        assert result["questions"][0]["id"] == feed["answered"]

    def test_newest_first_with_pagination(self, db_engine, feed):
        page1 = question_service.list_questions(db_engine, page=1, limit=2)
        page2 = question_service.list_questions(db_engine, page=2, limit=2)
        assert page1["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
        assert [q["id"] for q in page1["questions"]] == [feed["accepted"], feed["answered"]]
        assert [q["id"] for q in page2["questions"]] == [feed["plain"]]

    @pytest.mark.parametrize("kwargs", [{"filter": "bogus"}, {"sort": "random"}, {"page": 0}])
    def test_bad_parameters(self, db_engine, kwargs):
        with pytest.raises(ValidationError):
            question_service.list_questions(db_engine, **kwargs)


class TestTags:
    def test_counts_and_descriptions(self, db_engine, asker):
        create_question(db_engine, asker, tags=["python"])
        create_question(db_engine, asker, tags=["python", "django"])
        create_question(db_engine, asker, tags=["rust"])

        tags = question_service.list_tags(db_engine)
        assert [(t["name"], t["count"]) for t in tags] == [
            ("python", 2), ("django", 1), ("rust", 1),
        ]
        python = next(t for t in tags if t["name"] == "python")
        assert python["description"] == "High-level programming language"

    def test_deleted_question_tags_disappear(self, db_engine, asker, question_id):
        with Session(db_engine) as s:
            s.delete(s.get(Question, question_id))
            s.commit()
        assert question_service.list_tags(db_engine) == []
