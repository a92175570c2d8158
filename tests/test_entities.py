"""tests for machine and site naming"""
import pytest

from gmx.core.entities import (
    is_machine_name,
    machine_fqdn,
    machine_name,
    normalize_machine,
    site_of,
    split_machine,
)


def test_machine_name_and_site_of_are_inverse():
    for node, site in [("mlab1", "abc02"), ("mlab4", "xyz0t"), ("mlab2", "lga1c")]:
        assert site_of(machine_name(node, site)) == site
        assert split_machine(machine_name(node, site)) == (node, site)


def test_site_of_splits_on_first_separator():
    assert site_of("mlab1-abc02") == "abc02"
    assert site_of("mlab1-abc02-extra") == "abc02-extra"


@pytest.mark.parametrize("name", ["mlab1", "", "-abc02", "mlab1-"])
def test_malformed_machine_names(name):
    assert not is_machine_name(name)
    with pytest.raises(ValueError):
        site_of(name)


@pytest.mark.parametrize("node,site", [("", "abc02"), ("mlab-1", "abc02"), ("mlab1", "")])
def test_machine_name_rejects_ambiguous_parts(node, site):
    with pytest.raises(ValueError):
        machine_name(node, site)


def test_normalize_machine():
    assert normalize_machine("mlab1.abc02") == "mlab1-abc02"
    assert normalize_machine("mlab1-abc02") == "mlab1-abc02"


def test_machine_fqdn():
    assert machine_fqdn("mlab1-abc02", "mlab-oti") == "mlab1-abc02.mlab-oti.measurement-lab.org"
