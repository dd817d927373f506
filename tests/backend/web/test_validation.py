import pytest
from fastapi import HTTPException

from backend.web.utils.validation import (
    validate_database_spec,
    validate_enum,
    validate_php_version,
    validate_site_name,
)


@pytest.mark.parametrize("name", ["ab", "my-site", "site2", "a" * 50])
def test_valid_site_names(name):
    assert validate_site_name(name) == name


@pytest.mark.parametrize(
    ("name", "message"),
    [
        ("", "Site name is required"),
        (None, "Site name is required"),
        ("My_Site", "Site name must contain only lowercase letters, numbers, and hyphens"),
        ("../etc", "Site name must contain only lowercase letters, numbers, and hyphens"),
        ("a", "Site name must be between 2 and 50 characters"),
        ("a" * 51, "Site name must be between 2 and 50 characters"),
    ],
)
def test_invalid_site_names(name, message):
    with pytest.raises(HTTPException) as exc_info:
        validate_site_name(name)

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == message


def test_validate_enum():
    assert validate_enum("lamp", ["lamp", "lemp"], "recipe") == "lamp"
    with pytest.raises(HTTPException) as exc_info:
        validate_enum("iis", ["lamp", "lemp"], "recipe")

    assert exc_info.value.detail == "Invalid recipe. Allowed values: lamp, lemp"


@pytest.mark.parametrize("spec", ["mysql:8.0", "mariadb:10.6", "postgres:14"])
def test_valid_database_specs(spec):
    assert validate_database_spec(spec) == spec


@pytest.mark.parametrize("spec", ["mysql", "oracle:19", "mysql:", "mysql:latest; rm -rf /"])
def test_invalid_database_specs(spec):
    with pytest.raises(HTTPException) as exc_info:
        validate_database_spec(spec)

    assert exc_info.value.status_code == 400


def test_php_version():
    assert validate_php_version("8.2") == "8.2"
    with pytest.raises(HTTPException):
        validate_php_version("8")
