"""Tests for simulated and SOAP authorization clients. Transport is mocked."""

import threading
from collections import OrderedDict
from datetime import date, timedelta
from unittest.mock import MagicMock, patch

import requests
from django.test import SimpleTestCase
from django.utils import timezone
from lxml import etree

from einvoice.domain import SignedRequest
from einvoice.exceptions import NumberingError
from einvoice.services.authorization_client import (
    CANCELLED_REASON,
    PREVIOUSLY_ISSUED_REMARK,
    SimulatedAuthorityClient,
    SoapAuthorityClient,
    generate_simulated_code,
)
from einvoice.services.request_builder import build_request_document
from einvoice.services.soap_envelope import build_cae_request_envelope
from einvoice.tests.factories import make_credentials, make_invoice

ENDPOINT = "https://wswhomo.example.test/wsfev1/service.asmx"

_ENVELOPE = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<soap:Envelope xmlns:soap="http://www.w3.org/2003/05/soap-envelope"><soap:Body>{body}</soap:Body></soap:Envelope>'
)

APPROVED = _ENVELOPE.format(body=(
    '<FECAESolicitarResponse xmlns="http://ar.gov.afip.dif.FEV1/"><FECAESolicitarResult>'
    "<FeCabResp><Cuit>20111111112</Cuit><PtoVta>1</PtoVta><CbteTipo>1</CbteTipo>"
    "<CantReg>1</CantReg><Resultado>A</Resultado><Reproceso>N</Reproceso></FeCabResp>"
    "<FeDetResp><FECAEDetResponse><Concepto>1</Concepto><DocTipo>80</DocTipo>"
    "<DocNro>20123456789</DocNro><CbteDesde>7</CbteDesde><CbteHasta>7</CbteHasta>"
    "<CbteFch>20250314</CbteFch><Resultado>A</Resultado>"
    "<Observaciones><Obs><Code>10217</Code><Msg>Nota informativa</Msg></Obs></Observaciones>"
    "<CAE>75012345678901</CAE><CAEFchVto>20250324</CAEFchVto>"
    "</FECAEDetResponse></FeDetResp></FECAESolicitarResult></FECAESolicitarResponse>"
))

REJECTED = _ENVELOPE.format(body=(
    '<FECAESolicitarResponse xmlns="http://ar.gov.afip.dif.FEV1/"><FECAESolicitarResult>'
    "<FeCabResp><Resultado>R</Resultado></FeCabResp>"
    "<FeDetResp><FECAEDetResponse><Resultado>R</Resultado><CAE></CAE><CAEFchVto></CAEFchVto>"
    "</FECAEDetResponse></FeDetResp>"
    "<Errors><Err><Code>10016</Code><Msg>El numero de comprobante no es el proximo a autorizar</Msg></Err></Errors>"
    "</FECAESolicitarResult></FECAESolicitarResponse>"
))

CONSULTAR_NOT_FOUND = _ENVELOPE.format(body=(
    '<FECompConsultarResponse xmlns="http://ar.gov.afip.dif.FEV1/"><FECompConsultarResult>'
    "<Errors><Err><Code>602</Code><Msg>No existen datos</Msg></Err></Errors>"
    "</FECompConsultarResult></FECompConsultarResponse>"
))

CONSULTAR_FOUND = _ENVELOPE.format(body=(
    '<FECompConsultarResponse xmlns="http://ar.gov.afip.dif.FEV1/"><FECompConsultarResult>'
    "<ResultGet><CbteDesde>7</CbteDesde><Resultado>A</Resultado>"
    "<CodAutorizacion>75099999999999</CodAutorizacion><EmisionTipo>CAE</EmisionTipo>"
    "<FchVto>20250320</FchVto></ResultGet>"
    "</FECompConsultarResult></FECompConsultarResponse>"
))

FAULT = _ENVELOPE.format(body=(
    "<soap:Fault><soap:Code><soap:Value>soap:Receiver</soap:Value></soap:Code>"
    '<soap:Reason><soap:Text xml:lang="en">Server was unable to process request.</soap:Text></soap:Reason>'
    "</soap:Fault>"
))

LAST_AUTHORIZED = _ENVELOPE.format(body=(
    '<FECompUltimoAutorizadoResponse xmlns="http://ar.gov.afip.dif.FEV1/"><FECompUltimoAutorizadoResult>'
    "<PtoVta>1</PtoVta><CbteTipo>1</CbteTipo><CbteNro>41</CbteNro>"
    "</FECompUltimoAutorizadoResult></FECompUltimoAutorizadoResponse>"
))


def _response(body: str, status: int = 200):
    resp = MagicMock()
    resp.status_code = status
    resp.content = body.encode("utf-8")
    return resp


def _signed(sequence_number: int = 7) -> SignedRequest:
    credentials = make_credentials()
    document = build_request_document(make_invoice(sequence_number=sequence_number), credentials)
    auth = OrderedDict([("Token", "T"), ("Sign", "S"), ("Cuit", credentials.tax_id)])
    return SignedRequest(document=document, auth=auth)


class SimulatedAuthorityClientTests(SimpleTestCase):
    def test_generated_code_is_14_digits(self):
        for _ in range(50):
            code = generate_simulated_code()
            self.assertEqual(len(code), 14)
            self.assertTrue(code.isdigit())

    def test_accepts_with_ten_day_expiry(self):
        result = SimulatedAuthorityClient().submit(_signed())
        self.assertTrue(result.authorized)
        self.assertEqual(len(result.authorization_code), 14)
        self.assertEqual(result.expiry_date, timezone.localdate() + timedelta(days=10))
        self.assertEqual(result.remarks, ("Invoice authorized",))
        self.assertIsNone(result.failure_reason)

    def test_resubmission_returns_same_code(self):
        client = SimulatedAuthorityClient()
        first = client.submit(_signed(7))
        second = client.submit(_signed(7))
        other = client.submit(_signed(8))
        self.assertEqual(first.authorization_code, second.authorization_code)
        self.assertNotEqual(first.authorization_code, other.authorization_code)

    def test_cancelled_submission_registers_nothing(self):
        client = SimulatedAuthorityClient()
        cancel = threading.Event()
        cancel.set()
        result = client.submit(_signed(), cancel=cancel)
        self.assertFalse(result.authorized)
        self.assertEqual(result.failure_reason, CANCELLED_REASON)
        self.assertEqual(client.last_authorized_number(1, 1), 0)

    def test_last_authorized_number(self):
        client = SimulatedAuthorityClient()
        client.submit(_signed(3))
        client.submit(_signed(5))
        self.assertEqual(client.last_authorized_number(1, 1), 5)
        self.assertEqual(client.last_authorized_number(3, 1), 0)


class SoapEnvelopeTests(SimpleTestCase):
    def test_cae_request_envelope(self):
        root = etree.fromstring(build_cae_request_envelope(_signed()))
        ns = {"soap": "http://www.w3.org/2003/05/soap-envelope", "ar": "http://ar.gov.afip.dif.FEV1/"}
        request = root.find("soap:Body/ar:FECAESolicitar", ns)
        self.assertIsNotNone(request)
        self.assertEqual(request.findtext("ar:Auth/ar:Cuit", namespaces=ns), "20111111112")
        self.assertEqual(request.findtext("ar:FeCAEReq/ar:FeCabReq/ar:CbteTipo", namespaces=ns), "1")
        detail = request.find("ar:FeCAEReq/ar:FeDetReq/ar:FECAEDetRequest", ns)
        self.assertEqual(detail.findtext("ar:ImpTotal", namespaces=ns), "242.00")
        self.assertEqual(len(detail.findall("ar:Iva/ar:AlicIva", ns)), 1)
        self.assertEqual(detail.findtext("ar:Iva/ar:AlicIva/ar:Id", namespaces=ns), "5")


@patch("einvoice.services.authorization_client.authority_request")
class SoapAuthorityClientTests(SimpleTestCase):
    def setUp(self):
        self.client = SoapAuthorityClient(ENDPOINT)

    def test_approved(self, mock_request):
        mock_request.return_value = _response(APPROVED)
        result = self.client.submit(_signed(), timeout=5)
        self.assertTrue(result.authorized)
        self.assertEqual(result.authorization_code, "75012345678901")
        self.assertEqual(result.expiry_date, date(2025, 3, 24))
        self.assertEqual(result.remarks, ("10217: Nota informativa",))
        _, kwargs = mock_request.call_args
        self.assertEqual(kwargs["timeout"], 5)
        self.assertIn("FECAESolicitar", kwargs["headers"]["Content-Type"])

    def test_session_reused_across_calls(self, mock_request):
        mock_request.return_value = _response(APPROVED)
        self.client.submit(_signed(7))
        self.client.submit(_signed(8))
        sessions = [call.kwargs["session"] for call in mock_request.call_args_list]
        self.assertIsInstance(sessions[0], requests.Session)
        self.assertIs(sessions[0], sessions[1])
        self.assertIs(sessions[0], self.client.session)

    def test_rejected_maps_errors(self, mock_request):
        mock_request.side_effect = [_response(REJECTED), _response(CONSULTAR_NOT_FOUND)]
        result = self.client.submit(_signed())
        self.assertFalse(result.authorized)
        self.assertIn("10016", result.failure_reason)
        self.assertIn("proximo a autorizar", result.failure_reason)
        self.assertIsNone(result.authorization_code)

    def test_rejected_duplicate_returns_previous_code(self, mock_request):
        mock_request.side_effect = [_response(REJECTED), _response(CONSULTAR_FOUND)]
        result = self.client.submit(_signed())
        self.assertTrue(result.authorized)
        self.assertEqual(result.authorization_code, "75099999999999")
        self.assertEqual(result.expiry_date, date(2025, 3, 20))
        self.assertIn(PREVIOUSLY_ISSUED_REMARK, result.remarks)
        consult_envelope = mock_request.call_args_list[1].kwargs["data"]
        self.assertIn(b"FECompConsultar", consult_envelope)

    def test_soap_fault(self, mock_request):
        mock_request.return_value = _response(FAULT, status=500)
        result = self.client.submit(_signed())
        self.assertFalse(result.authorized)
        self.assertIn("unable to process", result.failure_reason)
        self.assertEqual(mock_request.call_count, 1)

    def test_timeout_is_not_raised(self, mock_request):
        mock_request.side_effect = requests.Timeout("read timed out")
        result = self.client.submit(_signed(), timeout=2)
        self.assertFalse(result.authorized)
        self.assertIn("2", result.failure_reason)

    def test_connection_error_is_not_raised(self, mock_request):
        mock_request.side_effect = requests.ConnectionError("connection refused")
        result = self.client.submit(_signed())
        self.assertFalse(result.authorized)
        self.assertIn("unreachable", result.failure_reason)

    def test_malformed_response(self, mock_request):
        mock_request.return_value = _response("<html>Bad gateway", status=502)
        result = self.client.submit(_signed())
        self.assertFalse(result.authorized)
        self.assertIn("Malformed", result.failure_reason)

    def test_cancelled_before_send(self, mock_request):
        cancel = threading.Event()
        cancel.set()
        result = self.client.submit(_signed(), cancel=cancel)
        self.assertFalse(result.authorized)
        mock_request.assert_not_called()

    def test_last_authorized_number(self, mock_request):
        mock_request.return_value = _response(LAST_AUTHORIZED)
        self.assertEqual(self.client.last_authorized_number(1, 1, {"Token": "T", "Sign": "S", "Cuit": "1"}), 41)

    def test_last_authorized_number_unavailable(self, mock_request):
        mock_request.side_effect = requests.ConnectionError("down")
        with self.assertRaises(NumberingError):
            self.client.last_authorized_number(1, 1, {"Token": "T", "Sign": "S", "Cuit": "1"})

    def test_token_never_logged(self, mock_request):
        mock_request.return_value = _response(APPROVED)
        credentials = make_credentials()
        document = build_request_document(make_invoice(), credentials)
        signed = SignedRequest(document=document, auth={"Token": "SECRET-TOKEN", "Sign": "SECRET-SIGN", "Cuit": "1"})
        with self.assertLogs("einvoice", level="INFO") as logs:
            self.client.submit(signed)
        joined = "\n".join(logs.output)
        self.assertNotIn("SECRET-TOKEN", joined)
        self.assertNotIn("SECRET-SIGN", joined)
