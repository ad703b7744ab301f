"""Tests for utils.folder_naming."""

import pytest

from utils.folder_naming import _check_containment, extract_project_name, get_output_dir, slugify


def test_slugify():
    assert slugify("  My Todo-App!  ") == "my_todo_app"


def test_project_name_drops_filler_words():
    assert extract_project_name("Build me a simple todo list app") == "todo_list"
    assert extract_project_name("make an app") == "project"


def test_output_dir_is_deduplicated(tmp_path):
    first = get_output_dir("build a weather dashboard", str(tmp_path))
    assert first == str(tmp_path / "projects" / "weather_dashboard")
    (tmp_path / "projects" / "weather_dashboard").mkdir(parents=True)
    assert get_output_dir("build a weather dashboard", str(tmp_path)).endswith("weather_dashboard_2")


def test_containment_rejects_escaping_paths(tmp_path):
    with pytest.raises(ValueError):
        _check_containment(str(tmp_path / ".." / "elsewhere"), str(tmp_path))
