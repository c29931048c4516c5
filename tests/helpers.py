"""Shared test helpers for the ipfs-vfs test suite."""

import json

import httpx

ROOT = "ipfs://QmRoot"
ABOUT = b"About this site.\nWe store things forever.\n"


def _error(message: str, status: int = 500) -> httpx.Response:
    return httpx.Response(status, json={"Message": message, "Code": 0, "Type": "error"})


class ResetBody(httpx.SyncByteStream):
    """Response body whose connection drops before any bytes arrive."""

    def __iter__(self):
        raise httpx.ReadError("connection reset")


class FakeDaemon:
    """Answers /api/v0/{cat,add,ls,files/stat} from dictionaries.

    Use handler with httpx.MockTransport. Requests are recorded in order;
    flip offline to make every request fail with a connection error.
    Set reset_errors to answer cat with a 500 whose body cannot be read.
    """

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.dirs: dict[str, list[str]] = {}
        self.requests: list[httpx.Request] = []
        self.added: list[bytes] = []
        self.add_status = 200
        self.head_length = False
        self.offline = False
        self.reset_errors = False
        self.added_hash = "QmNewObject"

    def add_file(self, path: str, content: bytes) -> None:
        self.files[path] = content

    def add_dir(self, path: str, names: list[str]) -> None:
        self.dirs[path] = list(names)

    def calls(self, op: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == f"/api/v0/{op}"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("Connection refused", request=request)

        op = request.url.path[len("/api/v0/"):]
        arg = request.url.params.get("arg", "")

        if op == "files/stat":
            path = arg[len("/ipfs/"):] if arg.startswith("/ipfs/") else arg
            if path in self.dirs:
                return httpx.Response(200, json={"Hash": path, "Size": 0, "Type": "directory"})
            if path in self.files:
                return httpx.Response(200, json={
                    "Hash": path, "Size": len(self.files[path]), "Type": "file",
                })
            return _error(f"no link named {path!r}")

        if op == "cat":
            if self.reset_errors:
                return httpx.Response(500, stream=ResetBody())
            if arg in self.dirs:
                return _error("this dag node is a directory")
            if arg not in self.files:
                return _error(f"no link named {arg!r}")
            content = self.files[arg]
            headers = {"X-Content-Length": str(len(content))}
            if request.method == "HEAD":
                return httpx.Response(200, headers=headers if self.head_length else {})
            return httpx.Response(200, content=content, headers=headers)

        if op == "ls":
            if arg not in self.dirs:
                return _error(f"no link named {arg!r}")
            links = [{"Name": name, "Hash": f"{arg}/{name}", "Size": 0, "Type": 2}
                     for name in self.dirs[arg]]
            return httpx.Response(200, json={"Objects": [{"Hash": arg, "Links": links}]})

        if op == "add":
            body = request.read()
            if self.add_status != 200:
                return _error("add refused", self.add_status)
            self.added.append(body)
            return httpx.Response(200, content=json.dumps({
                "Name": "file", "Hash": self.added_hash, "Size": str(len(body)),
            }).encode() + b"\n")

        return _error(f"unknown command {op}", 404)


def added_payload(body: bytes) -> bytes:
    """Content of the single "file" part of a recorded multipart add body."""
    head, _, rest = body.partition(b"\r\n\r\n")
    boundary = head.split(b"\r\n", 1)[0]
    return rest[:rest.index(b"\r\n" + boundary)]
