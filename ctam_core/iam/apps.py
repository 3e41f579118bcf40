from django.apps import AppConfig


class IamConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ctam_core.iam"

    def ready(self) -> None:
        # registers the OpenAPI auth extension
        from ctam_core.iam import openapi  # noqa: F401
