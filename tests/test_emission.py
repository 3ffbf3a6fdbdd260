"""
Tests for artifact rendering, writing and daemon control
"""

import json
import socket
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from bcg.emission import ArtifactWriter, BirdControl, JSONRenderer
from bcg.policy import compile_model
from bcg.utils.error_handling import EmissionError
from tests.helpers import LOCAL_ASN, make_config, make_downstream, make_peer, make_upstream


class ExplodingRenderer(JSONRenderer):
    """Fails on the second peer"""

    def __init__(self):
        super().__init__()
        self.calls = 0

    def render_peer(self, peer, model):
        self.calls += 1
        if self.calls == 2:
            raise RuntimeError("template error")
        return super().render_peer(peer, model)


class TestJSONRenderer(unittest.TestCase):

    def setUp(self):
        self.model = compile_model(make_config(make_peer(), make_upstream()))
        self.renderer = JSONRenderer()

    def test_peer_artifact_name(self):
        self.assertEqual(self.renderer.peer_artifact_name(self.model.peers["CLOUDFLARE"]),
                         "AS13335_CLOUDFLARE.json")

    def test_global_artifact(self):
        data = json.loads(self.renderer.render_global(self.model))
        self.assertEqual(data['global']['asn'], LOCAL_ASN)
        self.assertEqual(data['peers'], ["AS13335_CLOUDFLARE.json", "AS6939_HURRICANE.json"])
        self.assertEqual(data['origin']['4']['name'], "ORIGINv4")

    def test_peer_artifact(self):
        data = json.loads(self.renderer.render_peer(self.model.peers["HURRICANE"], self.model))
        self.assertEqual(data['local_asn'], LOCAL_ASN)
        self.assertEqual(data['policy_class'], "any")
        self.assertEqual(data['sessions'][0]['name'], "HURRICANEv4_0")


class TestArtifactWriter(unittest.TestCase):
    """All-or-nothing artifact writing"""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.output_dir = Path(self.temp_dir.name) / "bird"
        self.model = compile_model(make_config(make_peer(), make_upstream(), make_downstream()))

    def test_writes_global_and_peer_artifacts(self):
        result = ArtifactWriter(self.output_dir).write(self.model, JSONRenderer())

        self.assertEqual(sorted(result.written), [
            "AS112_CUSTOMER.json", "AS13335_CLOUDFLARE.json", "AS6939_HURRICANE.json", "bcg.json",
        ])
        self.assertTrue((self.output_dir / "bcg.json").exists())
        self.assertEqual([p.name for p in self.output_dir.glob(".bcg-*")], [])

    def test_stale_peer_artifacts_removed(self):
        self.output_dir.mkdir()
        (self.output_dir / "AS64999_GONE.json").write_text("{}")
        (self.output_dir / "notes.txt").write_text("keep me")

        result = ArtifactWriter(self.output_dir).write(self.model, JSONRenderer())

        self.assertEqual(result.removed, ["AS64999_GONE.json"])
        self.assertFalse((self.output_dir / "AS64999_GONE.json").exists())
        self.assertTrue((self.output_dir / "notes.txt").exists())

    def test_render_failure_leaves_directory_untouched(self):
        self.output_dir.mkdir()
        stale = self.output_dir / "AS64999_GONE.json"
        stale.write_text("{}")

        with self.assertRaises(EmissionError):
            ArtifactWriter(self.output_dir).write(self.model, ExplodingRenderer())

        self.assertEqual([p.name for p in self.output_dir.iterdir()], ["AS64999_GONE.json"])

    def test_write_failure_discards_staged_files(self):
        self.output_dir.mkdir()
        writer = ArtifactWriter(self.output_dir)

        with patch('bcg.emission.interface.os.replace', side_effect=OSError("disk full")):
            with self.assertRaises(EmissionError):
                writer.write(self.model, JSONRenderer())

        self.assertEqual([p.name for p in self.output_dir.glob(".bcg-*")], [])

    def test_dry_run_writes_nothing(self):
        result = ArtifactWriter(self.output_dir, dry_run=True).write(self.model, JSONRenderer())
        self.assertTrue(result.dry_run)
        self.assertIn("bcg.json", result.written)
        self.assertFalse(self.output_dir.exists())

    def test_artifact_name_collision(self):
        model = compile_model(make_config(make_peer(key="a"), make_peer(key="b")))
        model.peers["B"].peer.name = "A"
        with self.assertRaises(EmissionError):
            ArtifactWriter(self.output_dir).render(model, JSONRenderer())


class FakeReader:
    def __init__(self, lines):
        self.lines = list(lines)

    def readline(self):
        return self.lines.pop(0) if self.lines else ""

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class TestBirdControl(unittest.TestCase):
    """BIRD control socket conversation"""

    def mock_socket(self, mock_socket_class, lines):
        sock = MagicMock()
        sock.__enter__.return_value = sock
        sock.makefile.return_value = FakeReader(lines)
        mock_socket_class.return_value = sock
        return sock

    @patch('bcg.emission.bird_control.socket.socket')
    def test_configure_success(self, mock_socket_class):
        sock = self.mock_socket(mock_socket_class, [
            "0001 BIRD 2.15 ready.\n",
            "0002-Reading configuration from /etc/bird/bird.conf\n",
            "0003 Reconfigured\n",
        ])

        lines = BirdControl("/run/bird/bird.ctl", timeout=2).configure()

        self.assertEqual(lines[-1], "0003 Reconfigured")
        sock.connect.assert_called_once_with("/run/bird/bird.ctl")
        sock.sendall.assert_called_once_with(b"configure\n")
        sock.settimeout.assert_called_once_with(2)
        mock_socket_class.assert_called_once_with(socket.AF_UNIX, socket.SOCK_STREAM)

    @patch('bcg.emission.bird_control.socket.socket')
    def test_configure_parse_error(self, mock_socket_class):
        self.mock_socket(mock_socket_class, [
            "0001 BIRD 2.15 ready.\n",
            "0002-Reading configuration from /etc/bird/bird.conf\n",
            "8002 /etc/bird/peers/AS13335_CLOUDFLARE.conf:12:3 syntax error\n",
        ])
        with self.assertRaises(EmissionError) as ctx:
            BirdControl(timeout=2).configure()
        self.assertIn("syntax error", ctx.exception.technical_details)

    @patch('bcg.emission.bird_control.socket.socket')
    def test_socket_unavailable(self, mock_socket_class):
        sock = self.mock_socket(mock_socket_class, [])
        sock.connect.side_effect = FileNotFoundError("No such file or directory")
        with self.assertRaises(EmissionError):
            BirdControl(timeout=2).configure()

    @patch('bcg.emission.bird_control.socket.socket')
    def test_connection_closed(self, mock_socket_class):
        self.mock_socket(mock_socket_class, ["0001 BIRD 2.15 ready.\n"])
        with self.assertRaises(EmissionError):
            BirdControl(timeout=2).configure()


if __name__ == '__main__':
    unittest.main()
