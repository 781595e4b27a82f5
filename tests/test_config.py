from django.conf import settings


class TestTestSettings:

    def test_debug_toolbar_stays_in_development(self):
        assert 'debug_toolbar' not in settings.INSTALLED_APPS
        assert not any('debug_toolbar' in name for name in settings.MIDDLEWARE)

    def test_development_does_not_touch_base_lists(self):
        from config.settings import base, development

        assert 'debug_toolbar' in development.INSTALLED_APPS
        assert development.MIDDLEWARE[0] == 'debug_toolbar.middleware.DebugToolbarMiddleware'
        assert 'debug_toolbar' not in base.INSTALLED_APPS
        assert 'debug_toolbar.middleware.DebugToolbarMiddleware' not in base.MIDDLEWARE

    def test_cluster_retry_outlasts_timeout(self):
        assert settings.Q_CLUSTER['retry'] > settings.Q_CLUSTER['timeout']
