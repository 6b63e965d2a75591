from rest_framework import serializers
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.serializers import TokenObtainSerializer
from rest_framework_simplejwt.tokens import AccessToken

from .authentication import sign_token

User = get_user_model()

class UserSerializer(serializers.ModelSerializer):
    """Public shape of a user as the frontend consumes it."""
    fullName = serializers.CharField(source='full_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'fullName', 'role', 'level']
        read_only_fields = fields


class UserAdminSerializer(serializers.ModelSerializer):
    """Admin CRUD on user accounts."""
    password = serializers.CharField(write_only=True, required=False)

    class Meta:
        model = User
        fields = ['id', 'email', 'username', 'full_name', 'role', 'level', 'is_active', 'password', 'date_joined']
        read_only_fields = ['date_joined']
        extra_kwargs = {'username': {'required': False}}

    def create(self, validated_data):
        password = validated_data.pop('password', None)
        if not password:
            raise serializers.ValidationError({"password": "This field is required."})
        validated_data.setdefault('username', validated_data['email'])
        return User.objects.create_user(password=password, **validated_data)

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        user = super().update(instance, validated_data)
        if password:
            user.set_password(password)
            user.save()
        return user


class LoginSerializer(TokenObtainSerializer):
    """Validates email/password and returns a signed session token."""
    token_class = AccessToken

    def validate(self, attrs):
        super().validate(attrs)
        return {
            'token': sign_token(self.user),
            'user': UserSerializer(self.user).data,
        }
