"""Tests for the verification QR payload and image."""

import base64
import json
from unittest.mock import patch

from django.test import SimpleTestCase

from einvoice.domain import DocumentKind
from einvoice.exceptions import EncodingError
from einvoice.services.qr_generator import (
    PAYLOAD_FIELDS,
    VERIFICATION_URL,
    build_verification_payload,
    decode_verification_content,
    generate_verification_image,
    serialize_payload,
)
from einvoice.tests.factories import make_credentials, make_invoice

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class VerificationPayloadTests(SimpleTestCase):
    def setUp(self):
        self.credentials = make_credentials()

    def test_payload_fields_and_order(self):
        payload = build_verification_payload(make_invoice(), self.credentials, "75012345678901")
        self.assertEqual(tuple(payload), PAYLOAD_FIELDS)
        self.assertEqual(
            dict(payload),
            {
                "ver": 1,
                "fecha": "2025-03-14",
                "cuit": 20111111112,
                "ptoVta": 1,
                "tipoCmp": 1,
                "nroCmp": 7,
                "importe": 242.0,
                "moneda": "PES",
                "ctz": 1,
                "tipoDocRec": 80,
                "nroDocRec": 20123456789,
                "tipoCodAut": "E",
                "codAut": "75012345678901",
            },
        )

    def test_snapshot_serialized_payload(self):
        payload = build_verification_payload(make_invoice(), self.credentials, "75012345678901")
        self.assertEqual(
            serialize_payload(payload),
            '{"ver":1,"fecha":"2025-03-14","cuit":20111111112,"ptoVta":1,"tipoCmp":1,'
            '"nroCmp":7,"importe":242.0,"moneda":"PES","ctz":1,"tipoDocRec":80,'
            '"nroDocRec":20123456789,"tipoCodAut":"E","codAut":"75012345678901"}',
        )

    def test_document_type_follows_kind(self):
        payload = build_verification_payload(
            make_invoice(document_kind=DocumentKind.CREDIT_NOTE), self.credentials, "1"
        )
        self.assertEqual(payload["tipoCmp"], 3)


class VerificationImageTests(SimpleTestCase):
    def setUp(self):
        self.credentials = make_credentials()

    def test_round_trip(self):
        invoice = make_invoice()
        expected = build_verification_payload(invoice, self.credentials, "75012345678901")
        image = generate_verification_image(invoice, self.credentials, "75012345678901")
        self.assertTrue(image.content.startswith(VERIFICATION_URL + "?p="))
        decoded = decode_verification_content(image.content)
        self.assertEqual(list(decoded.items()), list(expected.items()))

    def test_round_trip_keeps_leading_zeros(self):
        image = generate_verification_image(make_invoice(), self.credentials, "00012345678901")
        decoded = decode_verification_content(image.content)
        self.assertEqual(decoded["codAut"], "00012345678901")

    def test_same_inputs_same_content(self):
        invoice = make_invoice()
        first = generate_verification_image(invoice, self.credentials, "75012345678901")
        second = generate_verification_image(invoice, self.credentials, "75012345678901")
        self.assertEqual(first.content, second.content)

    def test_png_and_data_url(self):
        image = generate_verification_image(make_invoice(), self.credentials, "75012345678901")
        self.assertTrue(image.png.startswith(PNG_SIGNATURE))
        prefix = "data:image/png;base64,"
        self.assertTrue(image.data_url.startswith(prefix))
        self.assertEqual(base64.b64decode(image.data_url[len(prefix):]), image.png)

    def test_content_payload_is_base64_json(self):
        image = generate_verification_image(make_invoice(), self.credentials, "75012345678901")
        raw = base64.b64decode(image.content.split("?p=", 1)[1])
        self.assertEqual(json.loads(raw)["codAut"], "75012345678901")

    @patch("einvoice.services.qr_generator.qrcode.make", side_effect=ValueError("data too big"))
    def test_encoding_failure(self, _mock_make):
        with self.assertRaises(EncodingError):
            generate_verification_image(make_invoice(), self.credentials, "75012345678901")

    def test_decode_without_payload(self):
        with self.assertRaises(ValueError):
            decode_verification_content(VERIFICATION_URL)
