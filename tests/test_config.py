"""Tests for buildstore.config module."""

import json

import pytest

from buildstore.config import (
    CONFIG_PATH,
    CONFIG_VERSION,
    ProjectConfig,
    load_project_config,
    parse_project_config,
    save_project_config,
)
from buildstore.core import FileRecord, MalformedConfigError


class TestProjectConfig:
    """Tests for ProjectConfig model."""

    def test_defaults(self):
        """Should fill version, type and timestamp."""
        config = ProjectConfig(name="My Site")
        assert config.type == "website"
        assert config.version == CONFIG_VERSION
        assert config.created_at
        assert config.description is None

    def test_strips_name(self):
        """Should trim whitespace around the name."""
        assert ProjectConfig(name="  Deck  ", type="deck").name == "Deck"

    def test_to_json_uses_camel_case(self):
        """Should write createdAt and omit unset fields."""
        config = ProjectConfig(name="Site", created_at="2025-01-01T00:00:00Z")
        data = json.loads(config.to_json())
        assert data == {
            "name": "Site",
            "type": "website",
            "version": CONFIG_VERSION,
            "createdAt": "2025-01-01T00:00:00Z",
        }

    def test_to_file(self):
        """Should target the config path."""
        assert ProjectConfig(name="Site").to_file().path == CONFIG_PATH


class TestParseProjectConfig:
    """Tests for parse_project_config function."""

    def test_valid(self):
        """Should parse the stored JSON shape."""
        text = json.dumps(
            {
                "name": "Pitch",
                "type": "deck",
                "version": "1.0.0",
                "createdAt": "2025-03-01T12:00:00.000Z",
            }
        )
        config = parse_project_config(text)
        assert config.name == "Pitch"
        assert config.type == "deck"
        assert config.created_at == "2025-03-01T12:00:00.000Z"

    def test_ignores_unknown_keys(self):
        """Should drop keys it does not know."""
        text = json.dumps({"name": "Site", "theme": "dark"})
        config = parse_project_config(text)
        assert "theme" not in json.loads(config.to_json())

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            "[1, 2]",
            json.dumps({"type": "website"}),
            json.dumps({"name": "   "}),
            json.dumps({"name": "Site", "type": "blog"}),
            json.dumps({"name": "Site", "createdAt": "yesterday"}),
        ],
    )
    def test_malformed(self, text):
        """Should raise MalformedConfigError for invalid files."""
        with pytest.raises(MalformedConfigError):
            parse_project_config(text)


class TestLoadSave:
    """Tests for loading and saving through a store."""

    @pytest.mark.asyncio
    async def test_missing(self, store):
        """Should return None when there is no config file."""
        assert await load_project_config(store) is None

    @pytest.mark.asyncio
    async def test_round_trip(self, store):
        """Should commit the config and read it back."""
        config = ProjectConfig(name="Site", description="Landing page")
        await save_project_config(store, config)
        loaded = await load_project_config(store)
        assert loaded == config
        assert (await store.list_history(1))[0].subject == "chore: update project config"

    @pytest.mark.asyncio
    async def test_malformed_in_repository(self, store):
        """Should surface a broken config instead of returning defaults."""
        await store.commit([FileRecord(CONFIG_PATH, '{"name": ""}')], "Break config")
        with pytest.raises(MalformedConfigError):
            await load_project_config(store)
