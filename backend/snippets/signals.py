"""
Django Signals

Every User gets a Profile holding role and gamification state. Superusers
and staff start with the admin role.

IMPORTANT: Signals do NOT fire on bulk_create() or QuerySet.update().
gamification._locked_profile() creates a missing profile on demand for
users inserted that way.
"""

from django.contrib.auth.models import User
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Profile


@receiver(post_save, sender=User)
def create_profile(sender, instance, created, **kwargs):
    if not created:
        return
    role = Profile.Role.ADMIN if (instance.is_superuser or instance.is_staff) else Profile.Role.USER
    Profile.objects.get_or_create(user=instance, defaults={'role': role})
