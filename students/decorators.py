from functools import wraps

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse

from .services import ensure_profile


def admin_required(view):
    """Allow only signed-in users whose profile role is ADMIN."""

    @login_required
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        profile, _ = ensure_profile(request.user)
        if not profile.is_admin:
            return JsonResponse({"error": "Admin only"}, status=403)
        return view(request, *args, **kwargs)

    return wrapper
