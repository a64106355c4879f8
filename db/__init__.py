from .db import (
    session_scope,
    create_all,
    dispose_engine,
    fetch_onboarded_users,
    get_user,
    get_daily_completion,
    get_weekly_completion,
    find_notifications,
    insert_notification,
    fetch_recent_notifications,
    count_unread_notifications,
    mark_notification_read,
    mark_all_notifications_read,
    get_squad,
    get_squad_call,
    get_coaching_client,
    fetch_squad_member_ids,
    upsert_reminder_job,
    get_reminder_job,
    fetch_due_reminder_jobs,
    delete_reminder_job,
    mark_reminder_job_sent,
    record_reminder_job_error,
    expire_reminder_jobs,
    upsert_call_job,
    get_call_job,
    fetch_due_call_jobs,
    delete_call_jobs,
    mark_call_job_executed,
    record_call_job_error,
    expire_call_jobs,
)  # noqa: F401
