import logging
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, List, Optional
from xml.sax.saxutils import escape

from winrm.protocol import Protocol

from .errors import WSManError

logger = logging.getLogger("esxi_report.wsman")

CIM_SCHEMA = "http://schema.omc-project.org/wbem/wscim/1/cim-schema/2/"
RAC_IP_URI = CIM_SCHEMA + "OMC_IPMIIPProtocolEndpoint"
RAC_FIRMWARE_URI = CIM_SCHEMA + "OMC_MCFirmwareIdentity"

NS_ENUM = "http://schemas.xmlsoap.org/ws/2004/09/enumeration"
NS_WSMAN = "http://schemas.dmtf.org/wbem/wsman/1/wsman.xsd"

ENVELOPE = """<s:Envelope xmlns:s="http://www.w3.org/2003/05/soap-envelope"
 xmlns:a="http://schemas.xmlsoap.org/ws/2004/08/addressing"
 xmlns:n="{ns_enum}" xmlns:w="{ns_wsman}">
<s:Header>
<a:To>{endpoint}</a:To>
<w:ResourceURI s:mustUnderstand="true">{resource_uri}</w:ResourceURI>
<a:ReplyTo><a:Address s:mustUnderstand="true">http://schemas.xmlsoap.org/ws/2004/08/addressing/role/anonymous</a:Address></a:ReplyTo>
<a:Action s:mustUnderstand="true">{ns_enum}/{action}</a:Action>
<w:MaxEnvelopeSize s:mustUnderstand="true">512000</w:MaxEnvelopeSize>
<a:MessageID>uuid:{message_id}</a:MessageID>
<w:OperationTimeout>PT{timeout}.000S</w:OperationTimeout>
</s:Header>
<s:Body>{body}</s:Body>
</s:Envelope>"""

ENUMERATE_BODY = "<n:Enumerate><w:OptimizeEnumeration/><w:MaxElements>32000</w:MaxElements></n:Enumerate>"
PULL_BODY = "<n:Pull><n:EnumerationContext>{context}</n:EnumerationContext><n:MaxElements>32000</n:MaxElements></n:Pull>"


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_items(payload: bytes) -> Dict[str, object]:
    """
    Parse an Enumerate/Pull response.

    Returns {"items": [ {property: value} ], "context": str|None, "end": bool}.
    """
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise WSManError("Unreadable WS-Management response", details=str(e))

    for node in root.iter():
        if _local(node.tag) == "Fault":
            reason = " ".join(t.strip() for t in node.itertext() if t.strip())
            raise WSManError("WS-Management fault", details=reason[:200])

    items: List[Dict[str, str]] = []
    context = None
    end = False
    for node in root.iter():
        name = _local(node.tag)
        if name == "Items":
            for instance in list(node):
                items.append({_local(prop.tag): (prop.text or "").strip() for prop in list(instance)})
        elif name == "EnumerationContext":
            context = (node.text or "").strip() or None
        elif name == "EndOfSequence":
            end = True
    return {"items": items, "context": context, "end": end}


@dataclass
class WSManClient:
    """
    Minimal WS-Management enumerator for the CIM broker on an ESXi host.

    ESXi accepts a CIM services ticket as both user name and password over
    basic authentication on port 443.
    """

    host: str
    username: str
    password: str
    port: int = 443
    timeout: int = 30
    verify_ssl: bool = False

    @property
    def endpoint(self) -> str:
        return f"https://{self.host}:{self.port}/wsman"

    def _protocol(self) -> Protocol:
        return Protocol(
            endpoint=self.endpoint,
            transport="basic",
            username=self.username,
            password=self.password,
            server_cert_validation="validate" if self.verify_ssl else "ignore",
            operation_timeout_sec=self.timeout,
            read_timeout_sec=self.timeout + 10,
        )

    def _message(self, resource_uri: str, action: str, body: str) -> str:
        return ENVELOPE.format(
            ns_enum=NS_ENUM,
            ns_wsman=NS_WSMAN,
            endpoint=escape(self.endpoint),
            resource_uri=escape(resource_uri),
            action=action,
            message_id=uuid.uuid4(),
            timeout=self.timeout,
            body=body,
        )

    def enumerate(self, resource_uri: str) -> List[Dict[str, str]]:
        protocol = self._protocol()
        payload = protocol.send_message(self._message(resource_uri, "Enumerate", ENUMERATE_BODY))
        page = parse_items(payload)
        items = list(page["items"])
        while page["context"] and not page["end"]:
            body = PULL_BODY.format(context=escape(page["context"]))
            page = parse_items(protocol.send_message(self._message(resource_uri, "Pull", body)))
            items.extend(page["items"])
        logger.debug("[%s] %s returned %d instance(s)", self.host, resource_uri.rsplit("/", 1)[-1], len(items))
        return items

    def first_value(self, resource_uri: str, prop: str) -> Optional[str]:
        for item in self.enumerate(resource_uri):
            value = item.get(prop)
            if value:
                return value
        return None
