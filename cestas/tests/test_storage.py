import unittest
from unittest.mock import MagicMock, patch

from cestas.storage import CosStorageClient, InMemoryStorageClient


class InMemoryStorageClientTests(unittest.TestCase):
    def test_upload_and_presign(self):
        storage = InMemoryStorageClient()
        storage.upload_bytes("reports/familias.csv", b"ID,Nome", content_type="text/csv")
        self.assertEqual(storage.get_bytes("reports/familias.csv"), b"ID,Nome")
        self.assertEqual(storage.objects["reports/familias.csv"].content_type, "text/csv")
        url = storage.presign_get("reports/familias.csv", expires_in=60)
        self.assertEqual(
            url, "https://example.test/storage/reports/familias.csv?op=get&expires=60"
        )

    def test_missing_object(self):
        with self.assertRaises(FileNotFoundError):
            InMemoryStorageClient().get_bytes("nope")


class CosStorageClientTests(unittest.TestCase):
    @patch("cestas.storage.boto3.client")
    def test_keys_are_prefixed(self, mock_client):
        s3 = MagicMock()
        s3.generate_presigned_url.return_value = "https://signed"
        mock_client.return_value = s3
        storage = CosStorageClient(
            bucket="reports-bucket",
            region="ap-guangzhou",
            endpoint="https://cos.ap-guangzhou.myqcloud.com",
            access_key_id="key",
            secret_access_key="secret",
            key_prefix="cestas",
        )

        storage.upload_bytes("reports/a.csv", b"x", content_type="text/csv")
        s3.put_object.assert_called_once_with(
            Bucket="reports-bucket",
            Key="cestas/reports/a.csv",
            Body=b"x",
            ContentType="text/csv",
            ContentDisposition='attachment; filename="a.csv"',
        )
        self.assertEqual(storage.presign_get("reports/a.csv", 120), "https://signed")
        s3.generate_presigned_url.assert_called_once_with(
            ClientMethod="get_object",
            Params={"Bucket": "reports-bucket", "Key": "cestas/reports/a.csv"},
            ExpiresIn=120,
        )

    @patch("cestas.storage.boto3.client")
    def test_no_prefix(self, mock_client):
        s3 = MagicMock()
        s3.get_object.return_value = {"Body": MagicMock(read=lambda: b"csv")}
        mock_client.return_value = s3
        storage = CosStorageClient(
            bucket="b", region="", endpoint="", access_key_id="", secret_access_key=""
        )
        self.assertEqual(storage.get_bytes("reports/a.csv"), b"csv")
        s3.get_object.assert_called_once_with(Bucket="b", Key="reports/a.csv")


if __name__ == "__main__":
    unittest.main()
