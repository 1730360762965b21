from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Task
from .snapshots import feed


def _publish_after_commit(user_id):
    """Push a fresh snapshot once the surrounding transaction commits."""
    transaction.on_commit(lambda: feed.publish(user_id))


@receiver(post_save, sender=Task)
def on_task_save(sender, instance, **kwargs):
    _publish_after_commit(instance.user_id)


@receiver(post_delete, sender=Task)
def on_task_delete(sender, instance, **kwargs):
    _publish_after_commit(instance.user_id)
