# tests/test_manifest.py
import logging

import pytest

from cartridge.manifest import (
    ManifestError,
    classify_resource,
    parse_manifest,
    parse_organizations,
    parse_resources,
    parse_xml,
    resource_titles,
)
from conftest import MANIFEST


def test_parse_manifest_reads_title_resources_and_kinds():
    m = parse_manifest(MANIFEST)

    assert m.title == "Sample Course"
    assert set(m.resources) == {
        "I_00001_R", "I_media_R", "I_00006_R", "I_00009_R",
        "I_00010_R", "I_00011_R", "I_00003_R", "I_00099_R",
    }
    kinds = {k: r.kind for k, r in m.resources.items()}
    assert kinds["I_00001_R"] == "webcontent"
    assert kinds["I_00006_R"] == "discussion_topic"
    assert kinds["I_00009_R"] == "web_link"
    assert kinds["I_00010_R"] == "basic_lti"
    assert kinds["I_00003_R"] == "assessment"
    assert kinds["I_00099_R"] == "unknown"
    assert m.resources["I_00006_R"].dependencies == ("I_media_R",)


def test_backslash_file_hrefs_are_normalized():
    m = parse_manifest(MANIFEST)
    hrefs = [f.href for f in m.resources["I_00001_R"].files]
    assert "I_00001_R/images/logo.png" in hrefs
    assert not any("\\" in h for h in hrefs)


def test_learning_modules_container_is_unwrapped():
    m = parse_manifest(MANIFEST)
    assert [i.identifier for i in m.organizations] == ["m1", "ct7", "m2"]
    assert all(i.indent == 0 for i in m.organizations)
    m1 = m.organizations[0]
    assert m1.title == "Your Mom, Research, & You"
    assert [c.identifier for c in m1.children] == ["ct1", "sub1", "ct4", "ct5", "ct6"]


def test_unresolved_identifierref_is_kept_and_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="cartridge_import"):
        m = parse_manifest(MANIFEST)
    lost = [c for c in m.organizations[0].children if c.identifier == "ct4"][0]
    assert lost.is_unresolved
    assert lost.title == "Lost page"
    assert any("I_MISSING" in r.getMessage() for r in caplog.records)


def test_resource_titles_first_title_wins():
    m = parse_manifest(MANIFEST)
    titles = resource_titles(m.organizations)
    assert titles["I_00001_R"] == "Syllabus"
    assert titles["I_00010_R"] == "BLTI Test"
    assert "I_MISSING" in titles  # titles are keyed by reference, resolved or not


def test_bare_sections_parse_without_manifest_root():
    res = parse_resources(parse_xml(
        '<resources><resource identifier="f3" type="webcontent" href="a1\\a1.html"/></resources>'
    ))
    assert res["f3"].href == "a1/a1.html"

    orgs = parse_organizations(parse_xml(
        "<organizations><organization><item identifier='ct5' identifierref='f3'><title>x</title></item>"
        "</organization></organizations>"
    ), res)
    assert orgs[0].resource is res["f3"]


@pytest.mark.parametrize("text", ["<manifest><resources>", "not xml at all"])
def test_malformed_manifest_raises(text):
    with pytest.raises(ManifestError):
        parse_manifest(text)


def test_wrong_root_and_empty_manifest_raise():
    with pytest.raises(ManifestError, match="expected <manifest>"):
        parse_manifest("<topic/>")
    with pytest.raises(ManifestError, match="neither resources nor organizations"):
        parse_manifest("<manifest><metadata/></manifest>")


def test_entity_expansion_is_refused():
    bomb = (
        '<?xml version="1.0"?><!DOCTYPE m [<!ENTITY a "aaaa"><!ENTITY b "&a;&a;">]>'
        "<manifest><resources>&b;</resources></manifest>"
    )
    with pytest.raises(ManifestError):
        parse_manifest(bomb)


@pytest.mark.parametrize(
    "type_attr,kind",
    [
        ("webcontent", "webcontent"),
        ("associatedcontent/imscc_xmlv1p1/learning-application-resource", "webcontent"),
        ("imsdt_xmlv1p0", "discussion_topic"),
        ("imsbasiclti_xmlv1p0", "basic_lti"),
        ("imswl_xmlv1p1", "web_link"),
        ("imsqti_xmlv1p2/imscc_xmlv1p1/question-bank", "question_bank"),
        ("imsqti_xmlv1p2/imscc_xmlv1p1/assessment", "assessment"),
        ("", "unknown"),
    ],
)
def test_classify_resource(type_attr, kind):
    assert classify_resource(type_attr) == kind
