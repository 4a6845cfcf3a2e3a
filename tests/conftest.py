# tests/conftest.py
from __future__ import annotations

import logging
import sys
import zipfile
from pathlib import Path
from typing import Dict, Union

import pytest

# ---------- import helpers ----------
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from logging_setup import LOGGER_NAME  # noqa: E402
from store.memory import MemoryStore  # noqa: E402


# ---------- a small but realistic cartridge ----------
MANIFEST = """<?xml version="1.0" encoding="UTF-8"?>
<manifest identifier="cctd0001" xmlns="http://www.imsglobal.org/xsd/imsccv1p1/imscp_v1p1"
          xmlns:lom="http://ltsc.ieee.org/xsd/imsccv1p1/LOM/resource"
          xmlns:lomimscc="http://ltsc.ieee.org/xsd/imsccv1p1/LOM/manifest">
  <metadata>
    <schema>IMS Common Cartridge</schema>
    <schemaversion>1.1.0</schemaversion>
    <lomimscc:lom>
      <lomimscc:general>
        <lomimscc:title><lomimscc:string>Sample Course</lomimscc:string></lomimscc:title>
      </lomimscc:general>
    </lomimscc:lom>
  </metadata>
  <organizations>
    <organization identifier="O_1" structure="rooted-hierarchy">
      <item identifier="LearningModules">
        <item identifier="m1">
          <title>Your Mom, Research, &amp; You</title>
          <item identifier="ct1" identifierref="I_00001_R">
            <title>Syllabus</title>
          </item>
          <item identifier="sub1">
            <title>Week 1</title>
            <item identifier="ct2" identifierref="I_00006_R">
              <title>Introduce yourself</title>
            </item>
            <item identifier="sub2">
              <title>Extra</title>
              <item identifier="ct3" identifierref="I_00009_R">
                <title>Wikipedia link</title>
              </item>
            </item>
          </item>
          <item identifier="ct4" identifierref="I_MISSING">
            <title>Lost page</title>
          </item>
          <item identifier="ct5" identifierref="I_00003_R">
            <title>Pretest</title>
          </item>
          <item identifier="ct6" identifierref="I_00099_R">
            <title>Some package</title>
          </item>
        </item>
        <item identifier="ct7" identifierref="I_media_R">
          <title>Dog picture</title>
        </item>
        <item identifier="m2">
          <title>Tools</title>
          <item identifier="ct8" identifierref="I_00010_R">
            <title>BLTI Test</title>
          </item>
          <item identifier="ct9" identifierref="I_00011_R">
            <title>Graded Tool</title>
          </item>
        </item>
      </item>
    </organization>
  </organizations>
  <resources>
    <resource identifier="I_00001_R" type="webcontent" href="I_00001_R/syllabus.html">
      <file href="I_00001_R/syllabus.html"/>
      <file href="I_00001_R\\images\\logo.png"/>
    </resource>
    <resource identifier="I_media_R" type="webcontent" href="I_media_R/dog.jpg">
      <file href="I_media_R/dog.jpg"/>
    </resource>
    <resource identifier="I_00006_R" type="imsdt_xmlv1p1">
      <file href="I_00006_R/topic.xml"/>
      <dependency identifierref="I_media_R"/>
    </resource>
    <resource identifier="I_00009_R" type="imswl_xmlv1p1">
      <file href="I_00009_R/link.xml"/>
    </resource>
    <resource identifier="I_00010_R" type="imsbasiclti_xmlv1p0">
      <file href="I_00010_R/tool.xml"/>
    </resource>
    <resource identifier="I_00011_R" type="imsbasiclti_xmlv1p0">
      <file href="I_00011_R/tool.xml"/>
    </resource>
    <resource identifier="I_00003_R" type="imsqti_xmlv1p2/imscc_xmlv1p1/assessment">
      <file href="I_00003_R/assessment.xml"/>
    </resource>
    <resource identifier="I_00099_R" type="imsapip_zipv1p0">
      <file href="I_00099_R/package.bin"/>
    </resource>
  </resources>
</manifest>
"""

TOPIC_XML = """<?xml version="1.0" encoding="UTF-8"?>
<topic xmlns="http://www.imsglobal.org/xsd/imsccv1p1/imsdt_v1p1">
  <title>Introduce yourself</title>
  <text texttype="text/html"><![CDATA[<p>Hi! <img src="$IMS-CC-FILEBASE$/../I_media_R/dog.jpg" alt="dog"/> Read <a href="../I_00001_R/syllabus.html">the syllabus</a> or <a href="http://example.com/about">this</a>.</p>]]></text>
  <attachments>
    <attachment href="../I_00001_R/syllabus.html"/>
  </attachments>
</topic>
"""

LINK_XML = """<?xml version="1.0" encoding="UTF-8"?>
<webLink xmlns="http://www.imsglobal.org/xsd/imsccv1p1/imswl_v1p1">
  <title>Wikipedia</title>
  <url href="http://en.wikipedia.org/wiki/Main_Page"/>
</webLink>
"""

TOOL_XML = """<?xml version="1.0" encoding="UTF-8"?>
<cartridge_basiclti_link xmlns="http://www.imsglobal.org/xsd/imslticc_v1p0"
    xmlns:blti="http://www.imsglobal.org/xsd/imsbasiclti_v1p0"
    xmlns:lticm="http://www.imsglobal.org/xsd/imslticm_v1p0">
  <blti:title>BLTI Test</blti:title>
  <blti:description>Yet another Basic LTI link</blti:description>
  <blti:launch_url>http://www.imsglobal.org/developers/BLTI/tool.php</blti:launch_url>
  <blti:custom>
    <lticm:property name="key1">value1</lticm:property>
  </blti:custom>
  <blti:extensions platform="my.lms.com">
    <lticm:property name="key">value</lticm:property>
  </blti:extensions>
</cartridge_basiclti_link>
"""

GRADED_TOOL_XML = """<?xml version="1.0" encoding="UTF-8"?>
<cartridge_basiclti_link xmlns="http://www.imsglobal.org/xsd/imslticc_v1p0"
    xmlns:blti="http://www.imsglobal.org/xsd/imsbasiclti_v1p0"
    xmlns:lticm="http://www.imsglobal.org/xsd/imslticm_v1p0">
  <blti:title>Graded Tool</blti:title>
  <blti:launch_url>http://example.com/graded</blti:launch_url>
  <blti:extensions platform="canvas.instructure.com">
    <lticm:property name="outcome">15.5</lticm:property>
    <lticm:property name="privacy_level">public</lticm:property>
  </blti:extensions>
</cartridge_basiclti_link>
"""

SAMPLE_FILES: Dict[str, Union[str, bytes]] = {
    "imsmanifest.xml": MANIFEST,
    "I_00001_R/syllabus.html": "<html><body><h1>Syllabus</h1></body></html>",
    "I_00001_R/images/logo.png": b"\x89PNG\r\n\x1a\nlogo",
    "I_media_R/dog.jpg": b"\xff\xd8\xff\xe0dog",
    "I_00006_R/topic.xml": TOPIC_XML,
    "I_00009_R/link.xml": LINK_XML,
    "I_00010_R/tool.xml": TOOL_XML,
    "I_00011_R/tool.xml": GRADED_TOOL_XML,
    "I_00003_R/assessment.xml": "<questestinterop/>",
    "I_00099_R/package.bin": b"\x00\x01",
}


def write_zip(path: Path, files: Dict[str, Union[str, bytes]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return path


# ---------- common fixtures ----------
@pytest.fixture
def make_cartridge(tmp_path: Path):
    """make_cartridge(files=None, name=...) -> path of a zip built from SAMPLE_FILES (or files)."""
    def _make(files: Dict[str, Union[str, bytes]] | None = None, name: str = "course.imscc") -> Path:
        return write_zip(tmp_path / "in" / name, SAMPLE_FILES if files is None else files)
    return _make


@pytest.fixture
def sample_cartridge(make_cartridge) -> Path:
    return make_cartridge()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture(autouse=True)
def _restore_project_logger():
    """setup_logging() sets propagate=False; undo it so caplog keeps working in later tests."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers, propagate, level = logger.handlers[:], logger.propagate, logger.level
    yield
    logger.handlers[:] = handlers
    logger.propagate = propagate
    logger.setLevel(level)
