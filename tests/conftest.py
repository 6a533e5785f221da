"""Shared fixtures: in-memory EPUB archives and a fake requests session."""

import io
import logging
import zipfile
from typing import Dict, Optional, Union

import pytest
import requests

CONTAINER_XML = '''<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
'''

NCX = '''<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <head/>
  <docTitle><text>Sample Book</text></docTitle>
  <navMap>
    <navPoint id="np1" playOrder="1">
      <navLabel><text>Chapter One</text></navLabel>
      <content src="text/chapter1.xhtml"/>
      <navPoint id="np2" playOrder="2">
        <navLabel><text>Section 1.1</text></navLabel>
        <content src="text/chapter1.xhtml#s11"/>
      </navPoint>
    </navPoint>
    <navPoint id="np3" playOrder="3">
      <navLabel><text>Chapter Two</text></navLabel>
      <content src="text/chapter2.xhtml"/>
    </navPoint>
  </navMap>
</ncx>
'''

NAV = '''<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<head><title>Contents</title></head>
<body>
  <nav epub:type="landmarks">
    <ol><li><a href="text/appendix.xhtml">Landmark</a></li></ol>
  </nav>
  <nav epub:type="toc">
    <ol>
      <li><a href="text/chapter1.xhtml"><span>1.</span> Chapter One</a>
        <ol><li><a href="text/chapter1.xhtml#s11">Section 1.1</a></li></ol>
      </li>
      <li><span>Part II</span>
        <ol><li><a href="text/chapter2.xhtml">Chapter Two</a></li></ol>
      </li>
    </ol>
  </nav>
</body>
</html>
'''

CHAPTER_ONE = '''
<h1 id="top">Chapter One</h1>
<p>See <a href="chapter2.xhtml#part2">the next chapter</a>.</p>
<p><img src="../images/cover.png" alt="Cover"/></p>
<h2 id="s11">Section 1.1</h2>
<p>Jump to <a href="#s11">this section</a> or visit <a href="https://example.com/">the site</a>.</p>
<p><img src="https://cdn.example.com/pics/remote.jpg?size=large" alt="Remote"/></p>
'''

CHAPTER_TWO = '''
<h1>Chapter Two</h1>
<p id="part2">Second part.</p>
<p>A <a href="missing.xhtml">broken link</a> stays.</p>
<p>Back to <a href="chapter1.xhtml">the start</a>.</p>
'''

APPENDIX = '''
<h1>Appendix</h1>
<p>Extra material.</p>
'''

TITLEPAGE = '<div><img src="images/cover.png" alt="Cover"/></div>'

PNG_BYTES = b'\x89PNG\r\n\x1a\nfake-png-data'
CSS = 'body { margin: 0; }\n'

REMOTE_IMAGE_URL = 'https://cdn.example.com/pics/remote.jpg?size=large'


def xhtml(title: str, body: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<!DOCTYPE html>\n'
        '<html xmlns="http://www.w3.org/1999/xhtml">'
        f'<head><title>{title}</title>'
        '<link rel="stylesheet" type="text/css" href="../styles/main.css"/></head>'
        f'<body>{body}</body></html>'
    )


def opf(toc: Optional[str] = 'ncx') -> str:
    """Package document; ``toc`` is 'ncx', 'nav' or None."""
    toc_items = {
        'ncx': '<item id="ncx" href="toc.ncx" media-type="application/x-dtbncx+xml"/>',
        'nav': '<item id="nav" href="nav.xhtml" media-type="application/xhtml+xml" properties="nav"/>',
        None: ''
    }
    spine_attr = ' toc="ncx"' if toc == 'ncx' else ''
    return f'''<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="bookid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>Sample Book</dc:title>
    <dc:creator>Jane Doe</dc:creator>
    <dc:creator>John Roe</dc:creator>
    <dc:language>en</dc:language>
    <dc:publisher>Example Press</dc:publisher>
  </metadata>
  <manifest>
    {toc_items[toc]}
    <item id="titlepage" href="titlepage.xhtml" media-type="application/xhtml+xml"/>
    <item id="ch1" href="text/chapter1.xhtml" media-type="application/xhtml+xml"/>
    <item id="ch2" href="text/chapter2.xhtml" media-type="application/xhtml+xml"/>
    <item id="appendix" href="text/appendix.xhtml" media-type="application/xhtml+xml"/>
    <item id="cover-img" href="images/cover.png" media-type="image/png"/>
    <item id="style" href="styles/main.css" media-type="text/css"/>
  </manifest>
  <spine{spine_attr}>
    <itemref idref="titlepage" linear="no"/>
    <itemref idref="ch1"/>
    <itemref idref="ch2"/>
  </spine>
</package>
'''


def sample_files(toc: Optional[str] = 'ncx') -> Dict[str, Union[str, bytes]]:
    """Archive members of the sample book, keyed by archive path."""
    files: Dict[str, Union[str, bytes]] = {
        'mimetype': 'application/epub+zip',
        'META-INF/container.xml': CONTAINER_XML,
        'OEBPS/content.opf': opf(toc),
        'OEBPS/titlepage.xhtml': xhtml('Cover', TITLEPAGE),
        'OEBPS/text/chapter1.xhtml': xhtml('Chapter One', CHAPTER_ONE),
        'OEBPS/text/chapter2.xhtml': xhtml('Chapter Two', CHAPTER_TWO),
        'OEBPS/text/appendix.xhtml': xhtml('Appendix', APPENDIX),
        'OEBPS/images/cover.png': PNG_BYTES,
        'OEBPS/styles/main.css': CSS,
    }
    if toc == 'ncx':
        files['OEBPS/toc.ncx'] = NCX
    elif toc == 'nav':
        files['OEBPS/nav.xhtml'] = NAV
    return files


def build_epub(files: Dict[str, Union[str, bytes]]) -> bytes:
    """Zip ``files`` into EPUB bytes."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            data = content.encode('utf-8') if isinstance(content, str) else content
            archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def epub_bytes():
    return build_epub(sample_files())


@pytest.fixture
def nav_epub_bytes():
    return build_epub(sample_files(toc='nav'))


@pytest.fixture
def write_epub(tmp_path):
    """Factory writing an archive to ``tmp_path/<name>``."""
    def _write(files: Optional[Dict[str, Union[str, bytes]]] = None, name: str = 'sample.epub'):
        path = tmp_path / name
        path.write_bytes(build_epub(files if files is not None else sample_files()))
        return path
    return _write


@pytest.fixture
def sample_epub(write_epub):
    return write_epub()


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b''):
        self.status_code = status_code
        self.content = content


class FakeSession:
    """Stand-in for ``requests.Session`` serving canned responses."""

    def __init__(self, responses: Optional[Dict[str, bytes]] = None, failing=()):
        self.responses = responses or {}
        self.failing = set(failing)
        self.headers: Dict[str, str] = {}
        self.requested = []
        self.closed = False

    def get(self, url, timeout=None):
        self.requested.append(url)
        if url in self.failing:
            raise requests.ConnectionError(f"cannot reach {url}")
        if url in self.responses:
            return FakeResponse(200, self.responses[url])
        return FakeResponse(404)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_session():
    return FakeSession({REMOTE_IMAGE_URL: b'remote-jpeg-data'})


@pytest.fixture(autouse=True)
def reset_epub2md_logger():
    """Drop handlers installed by CLI runs so they never outlive capsys."""
    yield
    logger = logging.getLogger('epub2md')
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
