"""
Integration tests for categories and enrollments on the course service.
"""
import uuid

import pytest

from edustream.models import Category, Course, Enrollment


@pytest.fixture
def category(db):
    category = Category(name="Programming", description="Code", icon="code")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@pytest.fixture
def published_course(db, category):
    course = Course(
        title="Python Basics",
        description="Learn Python from scratch",
        instructor_id="inst-1",
        instructor_name="Ivy",
        category=category.name,
        difficulty="beginner",
        duration=60,
        price=0,
        materials=[],
        requirements=[],
        tags=["python"],
        is_published=True,
    )
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


@pytest.fixture
def draft_course(db, category):
    course = Course(
        title="Unfinished",
        description="Not ready for students",
        instructor_id="inst-1",
        category=category.name,
        difficulty="advanced",
        duration=30,
        materials=[],
        requirements=[],
        tags=[],
        is_published=False,
    )
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


class TestCategories:
    """Test category reads and admin writes."""

    def test_create_requires_admin(self, course_client, caller):
        caller.set("inst-1", "instructor")

        response = course_client.post("/categories", json={"name": "Design", "description": "UI", "icon": "brush"})

        assert response.status_code == 403

    def test_create_and_list(self, course_client, caller):
        caller.set("adm-1", "admin")

        created = course_client.post("/categories", json={"name": "Design", "description": "UI", "icon": "brush"})
        course_client.post("/categories", json={"name": "Business", "description": "Money", "icon": "chart"})

        assert created.status_code == 201
        assert created.json()["course_count"] == 0
        names = [c["name"] for c in course_client.get("/categories").json()]
        assert names == ["Business", "Design"]

    def test_duplicate_name(self, course_client, caller, category):
        caller.set("adm-1", "admin")

        response = course_client.post("/categories", json={"name": "Programming", "description": "x", "icon": "y"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Category already exists"

    def test_toggle_hides_category(self, course_client, caller, category):
        caller.set("adm-1", "admin")

        response = course_client.post(f"/categories/{category.id}/toggle")

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert course_client.get("/categories").json() == []
        assert course_client.get(f"/categories/{category.id}").status_code == 404

    def test_update(self, course_client, caller, category):
        caller.set("adm-1", "admin")

        response = course_client.put(f"/categories/{category.id}", json={"icon": "terminal"})

        assert response.status_code == 200
        assert response.json()["icon"] == "terminal"
        assert response.json()["name"] == "Programming"

    def test_delete_with_courses_rejected(self, course_client, caller, category, published_course):
        caller.set("adm-1", "admin")

        response = course_client.delete(f"/categories/{category.id}")

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot delete category with existing courses"

    def test_delete_empty(self, course_client, caller, category, db):
        caller.set("adm-1", "admin")

        response = course_client.delete(f"/categories/{category.id}")

        assert response.status_code == 200
        assert db.query(Category).count() == 0

    def test_category_courses_lists_published_only(self, course_client, category, published_course, draft_course):
        response = course_client.get(f"/categories/{category.id}/courses")

        assert response.status_code == 200
        data = response.json()
        assert data["category"]["name"] == "Programming"
        assert [c["id"] for c in data["courses"]] == [str(published_course.id)]

    def test_unknown_category(self, course_client):
        assert course_client.get(f"/categories/{uuid.uuid4()}").status_code == 404


class TestEnrollments:
    """Test enrolling, unenrolling and the admin summary."""

    def test_enroll_twice(self, course_client, caller, published_course, db):
        caller.set("stu-1", "student")

        first = course_client.post(f"/enrollments/{published_course.id}/enroll")
        second = course_client.post(f"/enrollments/{published_course.id}/enroll")

        assert first.status_code == 201
        assert first.json()["course_id"] == str(published_course.id)
        assert second.status_code == 200
        assert second.json() == {"message": "Already enrolled"}
        assert db.query(Enrollment).count() == 1
        db.refresh(published_course)
        assert published_course.enrolled_count == 1

    def test_enroll_in_draft(self, course_client, caller, draft_course):
        caller.set("stu-1", "student")

        response = course_client.post(f"/enrollments/{draft_course.id}/enroll")

        assert response.status_code == 404
        assert response.json()["detail"] == "Course not found"

    def test_enroll_requires_login(self, course_client, published_course):
        assert course_client.post(f"/enrollments/{published_course.id}/enroll").status_code == 401

    def test_unenroll(self, course_client, caller, published_course, db):
        caller.set("stu-1", "student")
        course_client.post(f"/enrollments/{published_course.id}/enroll")

        response = course_client.delete(f"/enrollments/{published_course.id}/enroll")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert db.query(Enrollment).count() == 0
        db.refresh(published_course)
        assert published_course.enrolled_count == 0

    def test_unenroll_when_not_enrolled(self, course_client, caller, published_course):
        caller.set("stu-1", "student")

        response = course_client.delete(f"/enrollments/{published_course.id}/enroll")

        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_my_enrollments(self, course_client, caller, published_course):
        caller.set("stu-1", "student")
        course_client.post(f"/enrollments/{published_course.id}/enroll")

        response = course_client.get("/enrollments/me")

        assert response.status_code == 200
        items = response.json()
        assert len(items) == 1
        assert items[0]["course"]["title"] == "Python Basics"
        assert items[0]["course"]["instructor"]["name"] == "Ivy"

    def test_summary(self, course_client, caller, db, published_course, category):
        second = Course(
            title="Popular",
            description="Everyone takes this one",
            instructor_id="inst-2",
            category=category.name,
            difficulty="intermediate",
            duration=45,
            materials=[],
            requirements=[],
            tags=[],
            is_published=True,
        )
        db.add(second)
        db.commit()
        for user_id in ("a", "b"):
            caller.set(user_id, "student")
            course_client.post(f"/enrollments/{second.id}/enroll")
        caller.set("c", "student")
        course_client.post(f"/enrollments/{published_course.id}/enroll")

        caller.set("stu-1", "student")
        assert course_client.get("/enrollments/summary").status_code == 403

        caller.set("adm-1", "admin")
        summary = course_client.get("/enrollments/summary").json()

        assert [(item["title"], item["count"]) for item in summary] == [("Popular", 2), ("Python Basics", 1)]
