from django.conf import settings

SENTRY_ENABLED = bool(settings.SETUP.SENTRY_DSN)


def noop(*args, **kwargs):
    pass


if SENTRY_ENABLED:
    import sentry_sdk

    capture_exception = sentry_sdk.capture_exception
    set_tag = sentry_sdk.set_tag
else:
    capture_exception = noop
    set_tag = noop


def set_gatehouse_app(name: str):
    set_tag("gatehouse.app", name)
