"""
Tests for environment-driven configuration and the provider factory.
"""

import pytest
from pydantic import ValidationError

from companion_framework import config as framework_config
from companion_framework.config_models import FrameworkConfig
from companion_framework.factory import ProviderFactory
from companion_framework.providers.session_store.memory_store import InMemorySessionStore
from companion_framework.providers.session_store.supabase_store import SupabaseSessionStore


CREDENTIALS = ("DEEPGRAM_API_KEY", "GROQ_API_KEY", "SUPABASE_URL", "SUPABASE_KEY", "LOG_LEVEL")


@pytest.fixture
def clean_env(monkeypatch):
    for name in CREDENTIALS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestFrameworkConfig:

    def test_missing_keys_run_locally(self, clean_env):
        config = framework_config.get_framework_config()

        assert config['transcription']['cloud_provider'] is None
        assert config['transcription']['local_provider'] == 'faster_whisper'
        assert config['tts']['cloud_provider'] is None
        assert config['completion']['provider'] is None
        assert config['store']['provider'] == 'memory'

    def test_keys_enable_cloud_providers(self, clean_env):
        clean_env.setenv("DEEPGRAM_API_KEY", "dg-test-key-123456")
        clean_env.setenv("GROQ_API_KEY", "gsk-test-key-1234567890abcdef")
        clean_env.setenv("SUPABASE_URL", "https://example.supabase.co")
        clean_env.setenv("SUPABASE_KEY", "service-role-key")

        config = framework_config.get_framework_config()

        assert config['transcription']['cloud_provider'] == 'deepgram'
        assert config['transcription']['cloud']['api_key'] == "dg-test-key-123456"
        assert config['tts']['cloud']['voice'] == 'aura-asteria-en'
        assert config['completion']['provider'] == 'groq'
        assert config['store']['provider'] == 'supabase'

    def test_section_defaults(self, clean_env):
        config = framework_config.get_framework_config()

        assert config['reply'] == {'timeout': 10.0, 'max_tokens': 150, 'temperature': 0.7}
        assert config['tts']['local']['max_utterances'] == 8
        assert config['analysis']['interval_seconds'] == 1800

    def test_overrides(self, clean_env):
        config = framework_config.get_framework_config({'completion': {'timeout': 3.0}})
        assert config['reply']['timeout'] == 3.0

    def test_invalid_values_rejected(self, clean_env):
        clean_env.setenv("SUPABASE_URL", "not-a-url")
        with pytest.raises(ValidationError):
            FrameworkConfig.from_env()

        clean_env.delenv("SUPABASE_URL")
        with pytest.raises(ValidationError):
            framework_config.get_framework_config({'local_tts': {'max_utterances': 0}})

    def test_validate_environment_warns(self, clean_env):
        results = framework_config.validate_environment()
        assert results['valid']
        assert len(results['warnings']) == 3


class TestProviderFactory:

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            ProviderFactory.create_transcription_provider('nope', {})

    def test_session_stores(self):
        assert isinstance(ProviderFactory.create_session_store('memory', {}), InMemorySessionStore)
        store = ProviderFactory.create_session_store(
            'supabase', {'supabase_url': 'https://example.supabase.co', 'supabase_key': 'key'}
        )
        assert isinstance(store, SupabaseSessionStore)
        assert store.is_enabled

    def test_text_only_providers(self, clean_env):
        providers = ProviderFactory.create_all_providers(framework_config.get_framework_config(), voice=False)

        assert set(providers) == {'store', 'replies'}
        assert providers['replies'].completion is None

    def test_transcriber_without_engines_starts_degraded(self):
        transcriber = ProviderFactory.create_transcriber({'cloud_provider': None, 'local_provider': None})
        assert transcriber.state.degraded

    def test_list_providers(self):
        listed = ProviderFactory.list_providers()
        assert 'deepgram' in listed['transcription']
        assert 'faster_whisper' in listed['transcription']
        assert listed['store'] == ['memory', 'supabase']
