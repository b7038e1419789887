"""
Configuration for the companion framework.
Organized into discrete feature sections for clarity.

Secrets are never stored here. They are read from the environment (or a
.env file next to the project root):

    DEEPGRAM_API_KEY   cloud transcription and speech
    GROQ_API_KEY       reply generation
    SUPABASE_URL       session store (optional)
    SUPABASE_KEY       session store (optional)

A missing cloud key starts that capability on its local variant.
"""

from pathlib import Path
from typing import Dict, Any, Optional
from dotenv import load_dotenv

from .config_models import FrameworkConfig


# =============================================================================
# SECTION 1: ENVIRONMENT & CREDENTIALS
# =============================================================================

parent_dir = Path(__file__).parent.parent
env_path = parent_dir / ".env"
if env_path.exists():
    load_dotenv(env_path)


# =============================================================================
# SECTION 2: CLOUD SPEECH (Deepgram)
# =============================================================================

DEEPGRAM_CONFIG = {
    "stt_model": "nova-2",
    "language": "en-US",
    "smart_format": True,
    "voice": "aura-asteria-en",
    "timeout": 15.0,
}


# =============================================================================
# SECTION 3: LOCAL SPEECH (faster-whisper, pyttsx3 / say)
# =============================================================================

LOCAL_WHISPER_CONFIG = {
    "model": "small.en",
    "device": "cpu",
    "compute_type": "int8",
    "language": "en",
}

LOCAL_TTS_CONFIG = {
    "voice_id": 0,
    "base_wpm": 175,
    "volume": 0.9,
    "max_utterances": 8,     # Sentences past this are merged into the last utterance
}


# =============================================================================
# SECTION 4: REPLY GENERATION (Groq, OpenAI-compatible)
# =============================================================================

COMPLETION_CONFIG = {
    "model": "llama-3.1-8b-instant",
    "timeout": 10.0,
    "max_tokens": 150,
    "temperature": 0.7,
}


# =============================================================================
# SECTION 5: CAPTURE
# =============================================================================

CAPTURE_CONFIG = {
    "sample_rate": 16000,
    "blocksize": 1600,       # 100ms at 16kHz
    "max_seconds": 60,
}


# =============================================================================
# SECTION 6: BACKGROUND ANALYSIS
# =============================================================================

ANALYSIS_CONFIG = {
    "enabled": True,
    "interval_seconds": 30 * 60,
}


SECTIONS = {
    "deepgram": DEEPGRAM_CONFIG,
    "local_whisper": LOCAL_WHISPER_CONFIG,
    "local_tts": LOCAL_TTS_CONFIG,
    "completion": COMPLETION_CONFIG,
    "capture": CAPTURE_CONFIG,
    "analysis": ANALYSIS_CONFIG,
}


# =============================================================================
# SECTION 7: FRAMEWORK ASSEMBLY
# =============================================================================

def load_config(overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> FrameworkConfig:
    """Validated configuration from the sections above plus the environment."""
    sections = {name: dict(values) for name, values in SECTIONS.items()}
    for name, values in (overrides or {}).items():
        sections.setdefault(name, {}).update(values)
    return FrameworkConfig.from_env(sections)


def get_framework_config(overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Dict[str, Any]:
    """
    Assemble the complete framework configuration.

    Returns:
        Dictionary containing all provider configurations
    """
    return load_config(overrides).to_dict()


# =============================================================================
# SECTION 8: VALIDATION & DIAGNOSTICS
# =============================================================================

def validate_environment(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Report which capabilities run on cloud, local or in-memory variants."""
    config = config or get_framework_config()
    results = {"valid": True, "errors": [], "warnings": [], "info": []}

    if config["transcription"]["cloud_provider"] is None:
        results["warnings"].append("DEEPGRAM_API_KEY not set (local transcription and speech only)")
    else:
        results["info"].append("Deepgram: configured")

    if config["completion"]["provider"] is None:
        results["warnings"].append("GROQ_API_KEY not set (replies will use fallback lines)")
    else:
        results["info"].append(f"Completion model: {config['completion']['config']['model']}")

    if config["store"]["provider"] == "memory":
        results["warnings"].append("SUPABASE_URL/SUPABASE_KEY not set (sessions kept in memory)")
    else:
        results["info"].append("Supabase session store: configured")

    return results


def print_config_summary(config: Optional[Dict[str, Any]] = None):
    """Print a summary of the current configuration."""
    config = config or get_framework_config()
    print("=" * 60)
    print("🔧 Companion Framework Configuration")
    print("=" * 60)
    print(f"Transcription: {config['transcription']['cloud_provider'] or '-'} → {config['transcription']['local_provider']}")
    print(f"Speech:        {config['tts']['cloud_provider'] or '-'} → {config['tts']['local_provider']}")
    print(f"Completion:    {config['completion']['provider'] or 'fallback only'}")
    print(f"Store:         {config['store']['provider']}")
    print()

    validation = validate_environment(config)
    for info in validation["info"]:
        print(f"✅ {info}")
    if validation["warnings"]:
        print("\n⚠️  Warnings:")
        for warning in validation["warnings"]:
            print(f"  - {warning}")
    print("=" * 60)
