# apps/engagement/serializers.py

from rest_framework import serializers

from apps.common.enums import PopupTrigger


class PopupRequestSerializer(serializers.Serializer):
    trigger = serializers.ChoiceField(choices=PopupTrigger.choices, default=PopupTrigger.DEFAULT)
    force = serializers.BooleanField(default=False)
    title = serializers.CharField(required=False, allow_blank=True, max_length=120)


class DismissSerializer(serializers.Serializer):
    permanent = serializers.BooleanField(default=False)
