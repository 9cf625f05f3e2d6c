"""
Notification Module

Match notifications and digests with per-pair deduplication and detached
execution.

Usage:
    from notification import MatchNotificationDispatcher, NotificationChannelFactory

    channel = NotificationChannelFactory.get_channel('email')
    dispatcher = MatchNotificationDispatcher(orchestrator, channel)
    dispatcher.dispatch_for_new_job(job_id)
"""

from notification.channels import (
    DeliveryResult,
    NotificationChannel,
    EmailChannel,
    WebhookChannel,
    NotificationChannelFactory,
)

from notification.tracker import NotificationTrackerService

from notification.service import (
    MatchNotificationDispatcher,
    DispatchResult,
    DispatchState,
    BackgroundTaskRunner,
    TaskStatus,
    dispatch_new_job_task,
    dispatch_new_candidate_task,
    run_digest_task,
)

from notification.digest import MatchingDigestService

__all__ = [
    # Channels
    'DeliveryResult',
    'NotificationChannel',
    'EmailChannel',
    'WebhookChannel',
    'NotificationChannelFactory',
    # Tracker
    'NotificationTrackerService',
    # Dispatch
    'MatchNotificationDispatcher',
    'DispatchResult',
    'DispatchState',
    'BackgroundTaskRunner',
    'TaskStatus',
    'dispatch_new_job_task',
    'dispatch_new_candidate_task',
    'run_digest_task',
    # Digest
    'MatchingDigestService',
]
