# trip_scheduler/api/config.py
"""Configuration management for the trip scheduling engine."""
import os
from dotenv import load_dotenv

load_dotenv()


def get_openai_api_key():
    """Get OpenAI API key from environment."""
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ValueError("OPENAI_API_KEY not set")
    return api_key


def get_chat_model():
    """Get the chat model used to draft itinerary proposals."""
    return os.getenv("OPENAI_CHAT_MODEL", "gpt-4.1")


def get_google_maps_config():
    """Get Google Maps configuration."""
    return {
        "api_key": os.getenv("GOOGLE_MAPS_API_KEY", ""),
    }


def get_geocoding_config():
    """Get geocoding provider configuration.

    Providers are tried in the listed order; unknown names are skipped.
    """
    providers = os.getenv("GEOCODING_PROVIDERS", "google,nominatim")
    return {
        "providers": [p.strip().lower() for p in providers.split(",") if p.strip()],
        "nominatim_url": os.getenv(
            "NOMINATIM_URL", "https://nominatim.openstreetmap.org/search"
        ),
        "nominatim_user_agent": os.getenv(
            "NOMINATIM_USER_AGENT", "TripScheduler/1.0"
        ),
        "cache_seconds": int(os.getenv("GEOCODING_CACHE_SECONDS", "300")),
        "cache_size": int(os.getenv("GEOCODING_CACHE_SIZE", "1000")),
        "timeout": float(os.getenv("GEOCODING_TIMEOUT", "10")),
        "result_limit": int(os.getenv("GEOCODING_RESULT_LIMIT", "5")),
    }


def get_converter_config():
    """Get AI proposal conversion configuration."""
    return {
        # Geocoding calls in flight per day
        "geocode_concurrency": max(1, int(os.getenv("GEOCODE_CONCURRENCY", "4"))),
    }


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 5000))


def get_secret_key():
    """Get the Flask session secret, or None when unset."""
    return os.getenv("FLASK_SECRET_KEY")
