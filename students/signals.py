from django.contrib.auth.signals import user_logged_in
from django.dispatch import receiver


@receiver(user_logged_in)
def on_user_logged_in(sender, request, user, **kwargs):
    """Create the default profile the first time a user signs in."""
    # Import here to avoid circular import (services imports models).
    from .services import ensure_profile

    ensure_profile(user)
