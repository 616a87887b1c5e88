from src.config import settings
from src.models.notification import AdminFeedbackAlert, MemberBroadcastAlert, StudentTargetedAlert
from src.notifications.composer import compose


def test_feedback_alert_deep_links_to_admin_feedback() -> None:
    payload = compose(AdminFeedbackAlert(student_name="Asha", message_snippet="Wifi is down", feedback_id="fb-1"))

    assert payload.title == "New Feedback Submitted"
    assert payload.body == 'From: Asha - "Wifi is down"'
    assert payload.click_target == "/admin/feedback"
    assert payload.icon == settings.notification_icon_url
    assert payload.as_data() == {
        "title": "New Feedback Submitted",
        "body": 'From: Asha - "Wifi is down"',
        "icon": settings.notification_icon_url,
        "url": "/admin/feedback",
        "feedbackId": "fb-1",
    }


def test_anonymous_feedback_with_type_and_long_message() -> None:
    payload = compose(
        AdminFeedbackAlert(message_snippet="x" * 150, feedback_type="Complaint"),
        icon_url="https://cdn.example.com/icon.png",
    )

    assert payload.title == "New Feedback: Complaint"
    assert payload.body == f'An anonymous user submitted feedback: "{"x" * 100}..."'
    assert payload.icon == "https://cdn.example.com/icon.png"
    assert "feedbackId" not in payload.data


def test_closure_alert_is_prefixed() -> None:
    payload = compose(StudentTargetedAlert(student_id="S1", title="Holiday", message="Closed on Monday", alert_type="closure"))

    assert payload.title == "Closure Notice: Holiday"
    assert payload.body == "Closed on Monday"
    assert payload.click_target == "/member/alerts"
    assert payload.data == {"alertType": "closure"}


def test_broadcast_alert_uses_alert_text() -> None:
    payload = compose(MemberBroadcastAlert(title="Fees due", message="Pay by Friday", alert_type="warning"))

    assert payload.title == "Fees due"
    assert payload.as_data()["url"] == "/member/alerts"
