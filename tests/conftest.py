"""Shared fixtures.

No test touches the network: provider clients are ``MagicMock`` objects with
``AsyncMock`` methods, and PDFs are assembled in memory.
"""

from types import SimpleNamespace
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest


def build_pdf(
    text: Optional[str] = "Hello accessible world",
    lang: Optional[str] = None,
    marked: bool = False,
    title: Optional[str] = None,
) -> bytes:
    """Return a minimal single-page PDF whose page shows *text*."""
    stream = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode() if text else b""

    catalog = "<< /Type /Catalog /Pages 2 0 R"
    if lang:
        catalog += f" /Lang ({lang})"
    if marked:
        catalog += " /MarkInfo << /Marked true >>"
    catalog += " >>"

    objects = [
        catalog.encode(),
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    if title:
        objects.append(f"<< /Title ({title}) >>".encode())

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset

    trailer = b"<< /Size %d /Root 1 0 R" % (len(objects) + 1)
    if title:
        trailer += b" /Info %d 0 R" % len(objects)
    trailer += b" >>"
    out += b"trailer\n" + trailer + b"\nstartxref\n%d\n%%%%EOF\n" % xref_offset
    return bytes(out)


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def openai_client() -> MagicMock:
    """A stand-in for ``AsyncOpenAI`` with awaitable endpoint methods."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.beta.assistants.create = AsyncMock(return_value=SimpleNamespace(id="asst_1"))
    client.beta.threads.create = AsyncMock(return_value=SimpleNamespace(id="thread_1"))
    client.beta.threads.messages.create = AsyncMock(return_value=SimpleNamespace(id="msg_1"))
    client.beta.threads.messages.list = AsyncMock()
    client.beta.threads.runs.create = AsyncMock()
    client.beta.threads.runs.retrieve = AsyncMock()
    client.beta.threads.runs.cancel = AsyncMock()
    return client
