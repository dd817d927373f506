import json

import pytest

from backend.web.services.site_service import (
    Site,
    SiteNotFound,
    get_site_info,
    list_sites,
    parse_lando_list,
    resolve_site,
)
from config.schema import AppSettings
from core.command.runner import CommandResult
from tests.fakes.command import FakeRunner


def _write_site(root, folder, body):
    path = root / folder
    path.mkdir(parents=True)
    (path / ".lando.yml").write_text(body)
    return path


def _lando_list(*services):
    return CommandResult(success=True, stdout=json.dumps(list(services)), exit_code=0)


def test_parse_lando_list_groups_by_directory():
    stdout = json.dumps(
        [
            {"app": "_global_", "src": ["/x/.lando.yml"]},
            {"app": "myblog", "src": ["/sites/my-blog/.lando.yml"], "running": True, "service": "appserver"},
            {"app": "myblog", "src": ["/sites/my-blog/.lando.yml"], "running": True, "service": "database"},
            {"app": "nosrc"},
        ]
    )

    sites = parse_lando_list(stdout)

    assert list(sites) == ["/sites/my-blog"]
    assert sites["/sites/my-blog"].running is True
    assert sites["/sites/my-blog"].urls == ["https://myblog.lndo.site"]


def test_parse_lando_list_tolerates_garbage():
    assert parse_lando_list("not json") == {}
    assert parse_lando_list('{"a": 1}') == {}


@pytest.mark.asyncio
async def test_list_sites_merges_running_and_stopped(tmp_path):
    running_dir = _write_site(tmp_path, "my-blog", "name: my-blog\nrecipe: wordpress\n")
    _write_site(tmp_path, "shop", "name: shop\nrecipe: lamp\n")
    (tmp_path / "not-a-site").mkdir()
    runner = FakeRunner({"list": _lando_list({"app": "myblog", "src": [str(running_dir / ".lando.yml")], "running": True})})

    sites = await list_sites(AppSettings(lando_path="lando", sites_directory=str(tmp_path)), runner)

    by_name = {site.name: site for site in sites}
    assert set(by_name) == {"my-blog", "shop"}
    assert by_name["my-blog"].running is True
    assert by_name["my-blog"].recipe == "wordpress"
    assert by_name["my-blog"].urls == ["https://my-blog.lndo.site"]
    assert by_name["shop"].running is False
    assert by_name["shop"].to_dict() == {
        "app": "shop",
        "dir": str(tmp_path / "shop"),
        "running": "no",
        "urls": ["https://shop.lndo.site"],
        "recipe": "lamp",
    }


@pytest.mark.asyncio
async def test_list_sites_survives_lando_failure(tmp_path):
    _write_site(tmp_path, "shop", "name: shop\n")
    runner = FakeRunner({"list": CommandResult(success=False, error="lando: not found")})

    sites = await list_sites(AppSettings(sites_directory=str(tmp_path)), runner)

    assert [site.name for site in sites] == ["shop"]
    assert sites[0].recipe == "Unknown"


@pytest.mark.asyncio
async def test_folder_name_is_used_when_landofile_has_no_name(tmp_path):
    _write_site(tmp_path, "folder-name", "recipe: lemp\n")

    sites = await list_sites(AppSettings(sites_directory=str(tmp_path)), FakeRunner())

    assert sites[0].name == "folder-name"


@pytest.mark.asyncio
async def test_resolve_site(tmp_path):
    path = _write_site(tmp_path, "demo", "name: demo\n")
    settings = AppSettings(sites_directory=str(tmp_path))

    site = await resolve_site("demo", settings, FakeRunner())

    assert site.dir == str(path)
    with pytest.raises(SiteNotFound) as exc_info:
        await resolve_site("ghost", settings, FakeRunner())
    assert str(exc_info.value) == "Site ghost not found"


@pytest.mark.asyncio
async def test_get_site_info_returns_config_text_and_info(tmp_path):
    path = _write_site(tmp_path, "demo", "name: demo\nrecipe: lamp\n")
    runner = FakeRunner({"info": CommandResult(success=True, stdout='[{"service": "appserver"}]', exit_code=0)})

    info = await get_site_info(Site(name="demo", dir=str(path)), AppSettings(lando_path="lando"), runner)

    assert info == {"config": "name: demo\nrecipe: lamp\n", "info": [{"service": "appserver"}]}
    assert runner.commands == [("lando info --format json", str(path))]


@pytest.mark.asyncio
async def test_get_site_info_tolerates_lando_failure(tmp_path):
    path = _write_site(tmp_path, "demo", "name: demo\n")
    runner = FakeRunner({"info": CommandResult(success=False, error="boom")})

    info = await get_site_info(Site(name="demo", dir=str(path)), AppSettings(), runner)

    assert info["info"] == {}
