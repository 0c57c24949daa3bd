"""Tests for the template service."""

import pytest

from lxcompose.engine.templates import TemplateService, merge_overrides
from lxcompose.errors import AlreadyExistsError, NotFoundError, SpecValidationError
from lxcompose.models.state import ContainerStatus


@pytest.fixture
def templates(controller):
    """Template service sharing the controller's root."""
    return TemplateService(controller.root_dir, controller)


@pytest.fixture
def base(controller, make_spec):
    """Source container with a command and environment."""
    controller.create(make_spec(
        "base",
        command=["nginx", "-g", "daemon off;"],
        environment={"MODE": "dev"},
        resources={"memory_limit": "512M"},
    ))
    (controller.container_dir("base") / "console.log").write_text("old output\n")
    return "base"


class TestMergeOverrides:
    """Test override merging."""

    def test_no_overrides(self, make_spec):
        """Test the base spec is kept apart from the name."""
        spec = merge_overrides(make_spec("base", environment={"A": "1"}), None, "copy")

        assert spec.name == "copy"
        assert spec.environment == {"A": "1"}

    def test_non_empty_fields_replace(self, make_spec):
        """Test present fields replace the base value."""
        spec = merge_overrides(
            make_spec("base", environment={"A": "1"}, command=["sh"]),
            {"environment": {"B": "2"}, "image": "debian:12"},
            "copy",
        )

        assert spec.environment == {"B": "2"}
        assert spec.image == "debian:12"
        assert spec.command == ["sh"]

    def test_empty_fields_ignored(self, make_spec):
        """Test empty or null overrides leave the base value."""
        spec = merge_overrides(
            make_spec("base", environment={"A": "1"}, command=["sh"]),
            {"environment": {}, "command": [], "image": None, "name": "other"},
            "copy",
        )

        assert spec.environment == {"A": "1"}
        assert spec.command == ["sh"]
        assert spec.image == "alpine:3.19"
        assert spec.name == "copy"

    def test_spec_overrides_use_set_fields(self, make_spec):
        """Test a spec override only contributes explicitly set fields."""
        override = make_spec("ignored", command=["bash"])

        spec = merge_overrides(make_spec("base", environment={"A": "1"}), override, "copy")

        assert spec.command == ["bash"]
        assert spec.environment == {"A": "1"}

    def test_invalid_override(self, make_spec):
        """Test merged specs are validated."""
        with pytest.raises(SpecValidationError):
            merge_overrides(make_spec("base"), {"environment": {"BAD=KEY": "x"}}, "copy")


class TestTemplateService:
    """Test template capture and instantiation."""

    def test_create_and_get(self, templates, base):
        """Test a template records its source and spec."""
        created = templates.create_template("base", "web-tpl", "nginx base")

        loaded = templates.get_template("web-tpl")

        assert loaded == created
        assert loaded.source_container == "base"
        assert loaded.description == "nginx base"
        assert loaded.base_spec.command == ["nginx", "-g", "daemon off;"]

    def test_artifacts_copied_without_log(self, templates, controller, base):
        """Test config files are copied and the console log is not."""
        templates.create_template("base", "web-tpl")

        template_dir = templates.templates_dir / "web-tpl"
        assert (template_dir / "config").exists()
        assert (template_dir / "init.sh").exists()
        assert (template_dir / "template.json").exists()
        assert not (template_dir / "console.log").exists()

    def test_duplicate_template(self, templates, base):
        """Test template names are unique."""
        templates.create_template("base", "web-tpl")

        with pytest.raises(AlreadyExistsError):
            templates.create_template("base", "web-tpl")

    def test_invalid_template_name(self, templates, base):
        """Test malformed template names are rejected."""
        with pytest.raises(SpecValidationError):
            templates.create_template("base", "bad name")

    def test_unknown_container(self, templates):
        """Test templating a missing container."""
        with pytest.raises(NotFoundError):
            templates.create_template("ghost", "web-tpl")

    def test_list_templates(self, templates, base):
        """Test listing is sorted and skips corrupt metadata."""
        templates.create_template("base", "zeta")
        templates.create_template("base", "alpha")
        broken = templates.templates_dir / "broken"
        broken.mkdir()
        (broken / "template.json").write_text("{")

        assert [t.name for t in templates.list_templates()] == ["alpha", "zeta"]

    def test_list_without_directory(self, templates):
        """Test an empty listing before any template exists."""
        assert templates.list_templates() == []

    def test_delete_template(self, templates, base):
        """Test deletion removes the template."""
        templates.create_template("base", "web-tpl")

        templates.delete_template("web-tpl")

        assert not (templates.templates_dir / "web-tpl").exists()
        with pytest.raises(NotFoundError):
            templates.get_template("web-tpl")
        with pytest.raises(NotFoundError):
            templates.delete_template("web-tpl")

    def test_create_from_template(self, templates, controller, base):
        """Test instantiation copies the spec under the new name."""
        templates.create_template("base", "web-tpl")

        record = templates.create_from_template("web-tpl", "web-1")

        assert record.status == ContainerStatus.STOPPED
        assert record.spec.name == "web-1"
        assert record.spec.command == ["nginx", "-g", "daemon off;"]
        config = (controller.container_dir("web-1") / "config").read_text()
        assert "lxc.uts.name = web-1" in config
        assert "lxc.cgroup.memory.limit_in_bytes = 512M" in config
        assert (controller.container_dir("web-1") / "console.log").read_text() == ""

    def test_create_from_template_with_overrides(self, templates, base):
        """Test overrides replace only the given fields."""
        templates.create_template("base", "web-tpl")

        record = templates.create_from_template("web-tpl", "web-2", {"environment": {"MODE": "prod"}})

        assert record.spec.environment == {"MODE": "prod"}
        assert record.spec.resources.memory_limit == "512M"

    def test_create_from_unknown_template(self, templates):
        """Test instantiating a missing template."""
        with pytest.raises(NotFoundError):
            templates.create_from_template("ghost", "web-1")

    def test_create_from_template_existing_container(self, templates, base):
        """Test the new container name must be free."""
        templates.create_template("base", "web-tpl")

        with pytest.raises(AlreadyExistsError):
            templates.create_from_template("web-tpl", "base")

    def test_delete_keeps_instances(self, templates, controller, base):
        """Test containers made from a template outlive it."""
        templates.create_template("base", "web-tpl")
        templates.create_from_template("web-tpl", "web-1")

        templates.delete_template("web-tpl")

        assert controller.get("web-1").spec.name == "web-1"
        assert (controller.container_dir("web-1") / "config").exists()

    def test_template_survives_source_removal(self, templates, controller, base):
        """Test templates do not depend on their source container."""
        templates.create_template("base", "web-tpl")

        controller.remove("base")

        assert templates.create_from_template("web-tpl", "web-1").spec.command[0] == "nginx"
