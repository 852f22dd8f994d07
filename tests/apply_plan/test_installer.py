"""Tests for spine_agent.apply_plan.installer."""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from spine_agent.apply_plan import ConfigBinding, JobInstaller, JobSpec
from spine_agent.apply_plan.installer import harden_tree, replace_symlink
from spine_agent.core.errors import (
    ErrorCategory,
    HookError,
    InstallationError,
    NoBindingError,
    TemplateRenderError,
)
from spine_agent.core.settings import AgentSettings


def install_error(installer, spec, binding=None) -> InstallationError:
    with pytest.raises(InstallationError) as exc_info:
        installer.install(spec, binding)
    return exc_info.value


def tree_contents(root: Path) -> dict[Path, bytes]:
    """Every file below ``root`` keyed by relative path."""
    return {path.relative_to(root): path.read_bytes() for path in root.rglob("*") if path.is_file()}


class TestInstall:
    """Happy-path installs."""

    @pytest.fixture
    def ccdb_spec(self, make_bundle) -> JobSpec:
        return make_bundle(
            manifest={
                "templates": {
                    "foo.erb": "foo",
                    "bar.erb": "bar",
                    "test": "test",
                    "props.erb": "config/props",
                }
            },
            templates={
                "foo.erb": "<%= spec.key1 %>",
                "bar.erb": "<%= spec.key2 %>",
                "test": "<%= name %>, <%= index %>",
                "props.erb": "<%= properties.a %>",
            },
        )

    def test_renders_templates_into_install_path(self, installer, ccdb_spec, binding, base_dir):
        plan = installer.install(ccdb_spec, binding)

        install_path = base_dir / "data" / "jobs" / "postgres" / "2"
        assert plan.install_path == install_path
        assert (install_path / "foo").read_text() == "value1"
        assert (install_path / "bar").read_text() == "value2"
        assert (install_path / "test").read_text() == "ccdb, 42"
        assert (install_path / "config" / "props").read_text() == "b"

    def test_links_template_to_install_path(self, installer, ccdb_spec, binding, base_dir):
        plan = installer.install(ccdb_spec, binding)

        link = base_dir / "jobs" / "postgres"
        assert plan.link_path == link
        assert link.is_symlink()
        assert link.resolve() == plan.install_path.resolve()

    def test_unpacks_bundle_into_install_path(self, installer, ccdb_spec, binding, content_store):
        plan = installer.install(ccdb_spec, binding)
        assert content_store.calls == [("beefdad", "badcafe", plan.install_path)]

    def test_runs_post_install_hook_from_install_path(self, installer, ccdb_spec, binding, hooks):
        plan = installer.install(ccdb_spec, binding)
        assert hooks.calls == [("post_install", "postgres", plan.install_path)]

    def test_reinstall_is_idempotent(self, installer, ccdb_spec, binding, base_dir):
        first = installer.install(ccdb_spec, binding)
        before = tree_contents(first.install_path)
        second = installer.install(ccdb_spec, binding)

        assert first == second
        assert tree_contents(second.install_path) == before
        assert before[Path("foo")] == b"value1"
        assert second.link_path.resolve() == second.install_path.resolve()
        assert not any(p.name.endswith(".tmp") for p in (base_dir / "jobs").iterdir())

    def test_new_version_repoints_link(self, installer, make_bundle, binding):
        old = make_bundle(manifest={}, version="2", blobstore_id="b2", checksum="s2")
        new = make_bundle(manifest={}, version="3", blobstore_id="b3", checksum="s3")

        old_plan = installer.install(old, binding)
        new_plan = installer.install(new, binding)

        assert new_plan.link_path == old_plan.link_path
        assert new_plan.link_path.resolve() == new_plan.install_path.resolve()
        assert old_plan.install_path.is_dir()

    def test_bin_destinations_are_executable(self, installer, make_bundle, binding):
        spec = make_bundle(
            manifest={"templates": {"ctl.erb": "bin/ctl", "conf.erb": "config/app.conf"}},
            templates={"ctl.erb": "#!/bin/sh\necho <%= name %>\n", "conf.erb": "x"},
        )
        plan = installer.install(spec, binding)

        ctl = plan.install_path / "bin" / "ctl"
        assert ctl.read_text() == "#!/bin/sh\necho ccdb\n"
        assert stat.S_IMODE(ctl.stat().st_mode) == 0o755
        assert not os.access(plan.install_path / "config" / "app.conf", os.X_OK)

    def test_harden_permissions_strips_other_bits(self, base_dir, content_store, hooks, make_bundle, binding):
        settings = AgentSettings(base_dir=base_dir, harden_permissions=True)
        installer = JobInstaller(settings, content_store, hooks)
        spec = make_bundle(
            manifest={"templates": {"ctl.erb": "bin/ctl"}},
            templates={"ctl.erb": "#!/bin/sh\n"},
        )
        plan = installer.install(spec, binding)

        for directory, _, files in os.walk(plan.install_path):
            for path in [directory] + [os.path.join(directory, name) for name in files]:
                assert os.stat(path).st_mode & 0o007 == 0
        assert stat.S_IMODE((plan.install_path / "bin" / "ctl").stat().st_mode) == 0o750


class TestInstallWithoutBinding:
    """A missing binding is only acceptable for template-free jobs."""

    def test_fails_when_manifest_declares_templates(self, installer, make_bundle):
        spec = make_bundle(manifest={"templates": {"foo.erb": "foo"}}, templates={"foo.erb": "x"})
        error = install_error(installer, spec)

        assert str(error) == (
            "Failed to install job 'ccdb.postgres': "
            "unable to bind configuration, no binding provided"
        )
        assert isinstance(error.cause, NoBindingError)

    def test_fails_when_manifest_is_missing(self, installer, make_bundle):
        spec = make_bundle(manifest=None)
        error = install_error(installer, spec)

        assert error.reason == "unable to bind configuration, no binding provided"

    def test_fails_when_manifest_is_invalid(self, installer, make_bundle):
        spec = make_bundle(manifest="- a\n- b\n")
        error = install_error(installer, spec)

        assert error.reason == "unable to bind configuration, no binding provided"
        assert error.cause.__cause__ is not None

    @pytest.mark.parametrize("manifest", [{}, {"name": "postgres"}, {"templates": {}}])
    def test_succeeds_without_templates(self, installer, make_bundle, manifest, hooks):
        spec = make_bundle(manifest=manifest)
        plan = installer.install(spec)

        assert plan.link_path.resolve() == plan.install_path.resolve()
        assert hooks.calls == [("post_install", "postgres", plan.install_path)]


class TestInstallFailures:
    """Every failure is an InstallationError with a stable message."""

    def test_missing_manifest(self, installer, make_bundle, binding, base_dir):
        spec = make_bundle(manifest=None)
        error = install_error(installer, spec, binding)

        manifest = base_dir / "data" / "jobs" / "postgres" / "2" / "job.MF"
        assert str(error) == f"Failed to install job 'ccdb.postgres': cannot find job manifest {manifest}"

    def test_malformed_manifest(self, installer, make_bundle, binding, base_dir):
        spec = make_bundle(manifest="templates: [foo\n")
        error = install_error(installer, spec, binding)

        manifest = base_dir / "data" / "jobs" / "postgres" / "2" / "job.MF"
        assert str(error) == f"Failed to install job 'ccdb.postgres': malformed job manifest {manifest}"

    @pytest.mark.parametrize(
        "text, type_name",
        [
            ("- a\n- b\n", "Array"),
            ("42\n", "Integer"),
            ("just a string\n", "String"),
        ],
    )
    def test_manifest_is_not_a_mapping(self, installer, make_bundle, binding, text, type_name):
        spec = make_bundle(manifest=text)
        error = install_error(installer, spec, binding)

        assert error.reason == f"invalid job manifest, Hash expected, {type_name} given"

    @pytest.mark.parametrize(
        "text, type_name",
        [
            ("templates: foo\n", "String"),
            ("templates: [a, b]\n", "Array"),
            ("templates: 3\n", "Integer"),
        ],
    )
    def test_templates_is_not_a_mapping(self, installer, make_bundle, binding, text, type_name):
        spec = make_bundle(manifest=text)
        error = install_error(installer, spec, binding)

        assert error.reason == (
            f"invalid value for templates in job manifest, Hash expected, {type_name} given"
        )

    def test_template_file_missing(self, installer, make_bundle, binding):
        spec = make_bundle(manifest={"templates": {"foo.erb": "foo"}})
        error = install_error(installer, spec, binding)

        assert str(error) == "Failed to install job 'ccdb.postgres': template 'foo.erb' doesn't exist"

    def test_property_not_found(self, installer, make_bundle, binding):
        spec = make_bundle(
            manifest={"templates": {"foo.erb": "foo"}},
            templates={"foo.erb": "<%= p('foo.bar') %>"},
        )
        error = install_error(installer, spec, binding)

        assert str(error) == (
            "Failed to install job 'ccdb.postgres': failed to process configuration "
            "template 'foo.erb': line 1, error: Can't find property 'foo.bar'"
        )
        assert isinstance(error.cause, TemplateRenderError)
        assert error.cause.line == 1

    def test_render_error_reports_template_line(self, installer, make_bundle, binding):
        spec = make_bundle(
            manifest={"templates": {"foo.erb": "foo"}},
            templates={"foo.erb": "a = 1\nb = 2\nc = <%= properties.nope %>\n"},
        )
        error = install_error(installer, spec, binding)

        assert error.reason == (
            "failed to process configuration template 'foo.erb': "
            "line 3, error: Can't find property 'nope'"
        )

    def test_failed_render_leaves_link_untouched(self, installer, make_bundle, binding):
        spec = make_bundle(
            manifest={"templates": {"foo.erb": "foo"}},
            templates={"foo.erb": "<%= p('missing') %>"},
        )
        install_error(installer, spec, binding)

        assert not installer.plan_for(spec).link_path.exists()

    def test_destination_outside_install_path(self, installer, make_bundle, binding):
        spec = make_bundle(
            manifest={"templates": {"foo.erb": "../../escape"}},
            templates={"foo.erb": "x"},
        )
        error = install_error(installer, spec, binding)

        assert "outside the job directory" in error.reason
        assert not (installer.settings.data_jobs_dir / "escape").exists()

    def test_content_store_failure(self, installer, binding):
        spec = JobSpec.parse(
            "ccdb", {"name": "postgres", "version": "2", "sha1": "x", "blobstore_id": "nope"}
        )
        error = install_error(installer, spec, binding)

        assert error.reason == "failed to unpack job template: blob 'nope' not found"

    def test_hook_failure(self, installer, make_bundle, binding, hooks):
        hooks.error = HookError("post_install hook for postgres failed, exit status 1, stderr: boom")
        spec = make_bundle(manifest={})
        error = install_error(installer, spec, binding)

        assert error.reason == "post_install hook for postgres failed, exit status 1, stderr: boom"
        assert not installer.plan_for(spec).link_path.exists()

    def test_system_call_error(self, installer, make_bundle, binding, hooks):
        hooks.error = PermissionError(13, "Permission denied")
        spec = make_bundle(manifest={})
        error = install_error(installer, spec, binding)

        assert error.reason.startswith("system call error: ")
        assert "Permission denied" in error.reason

    def test_error_metadata(self, installer, make_bundle, binding):
        spec = make_bundle(manifest=None)
        error = install_error(installer, spec, binding)

        assert error.category == ErrorCategory.INSTALL
        assert error.job == "ccdb.postgres"
        assert error.to_dict()["context"] == {"job": "ccdb.postgres"}


class TestFilesystemHelpers:
    def test_replace_symlink_creates_parent(self, tmp_path):
        target = tmp_path / "target"
        target.mkdir()
        link = tmp_path / "nested" / "link"

        replace_symlink(link, target)

        assert link.is_symlink()
        assert link.resolve() == target.resolve()

    def test_replace_symlink_swaps_existing_link(self, tmp_path):
        first, second = tmp_path / "v1", tmp_path / "v2"
        first.mkdir()
        second.mkdir()
        link = tmp_path / "current"

        replace_symlink(link, first)
        replace_symlink(link, second)

        assert link.resolve() == second.resolve()
        assert sorted(p.name for p in tmp_path.iterdir()) == ["current", "v1", "v2"]

    def test_harden_tree(self, tmp_path):
        root = tmp_path / "job"
        (root / "bin").mkdir(parents=True)
        script = root / "bin" / "run"
        script.write_text("#!/bin/sh\n")
        script.chmod(0o777)

        harden_tree(root)

        assert stat.S_IMODE(script.stat().st_mode) == 0o770
        assert stat.S_IMODE((root / "bin").stat().st_mode) & 0o007 == 0


def test_empty_binding_renders_static_templates(installer, make_bundle):
    spec = make_bundle(
        manifest={"templates": {"foo.erb": "foo"}},
        templates={"foo.erb": "static"},
    )
    plan = installer.install(spec, ConfigBinding.from_config({}))
    assert (plan.install_path / "foo").read_text() == "static"
