"""
Custom authentication backend for Notes Hub.

Lets users sign in with either their username or their email.
"""
from django.contrib.auth.backends import BaseBackend
from django.contrib.auth import get_user_model

User = get_user_model()


class UsernameOrEmailBackend(BaseBackend):
    """
    Authenticate using a username or an email address.

    Soft-deleted and inactive accounts never authenticate.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        """
        Authenticate user by login (username or email) and password.

        Args:
            request: HTTP request object
            username: Username or email address
            password: Plain text password

        Returns:
            User instance if authentication succeeds, None otherwise
        """
        login = username or kwargs.get('login') or kwargs.get('email')

        if not login or not password:
            return None

        user = User.objects.by_login(login)
        if user is None:
            # Run the default password hasher once to reduce timing
            # difference between existing and non-existing users
            User().set_password(password)
            return None

        if user.check_password(password) and user.is_active:
            return user

        return None

    def get_user(self, user_id):
        """
        Get user by ID.

        Returns:
            User instance if found, None otherwise
        """
        return User.objects.filter(pk=user_id).first()
