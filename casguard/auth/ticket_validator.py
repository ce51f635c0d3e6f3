"""
CAS ticket validation response parsing

Turns the raw body returned by a CAS validation endpoint into a
ValidationOutcome. CAS 1.0 answers in plain text, CAS 2.0/3.0 answer with a
serviceResponse XML document.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Union
from xml.parsers.expat import ExpatError

import xmltodict

from .config import SUPPORTED_VERSIONS
from .exceptions import AuthenticationRejected, ConfigurationError, MalformedResponse

AttributeValue = Union[str, List[str]]


@dataclass(frozen=True)
class ValidationSuccess:
    """The CAS server accepted the ticket"""
    principal: str
    attributes: Optional[Dict[str, AttributeValue]] = None

    ok = True


@dataclass(frozen=True)
class ValidationFailure:
    """The ticket could not be validated"""
    error: Union[MalformedResponse, AuthenticationRejected]

    ok = False

    @property
    def code(self) -> Optional[str]:
        return getattr(self.error, 'code', None)

    @property
    def description(self) -> Optional[str]:
        return getattr(self.error, 'description', None)


ValidationOutcome = Union[ValidationSuccess, ValidationFailure]


def _collapse(value: str) -> str:
    return ' '.join(value.split())


def _normalize_node(path, key, value):
    """xmltodict postprocessor: strip namespace prefixes, lower-case names, normalize text"""
    if not key.startswith(('@', '#')):
        key = key.rpartition(':')[2].lower()
    if isinstance(value, str):
        value = _collapse(value)
    return key, value


def _text(node: Any) -> Optional[str]:
    """Text content of a parsed element, whatever shape xmltodict gave it"""
    if isinstance(node, list):
        return _text(node[0]) if node else None
    if isinstance(node, dict):
        return node.get('#text')
    return node


def _attributes(node: Any) -> Dict[str, AttributeValue]:
    if isinstance(node, list):
        node = node[0] if node else None
    if not isinstance(node, dict):
        return {}

    attributes: Dict[str, AttributeValue] = {}
    for name, value in node.items():
        if name.startswith(('@', '#')):
            continue
        if isinstance(value, list):
            attributes[name] = [_text(item) or '' for item in value]
        else:
            attributes[name] = _text(value) or ''
    return attributes


def _first(node: Any) -> Any:
    if isinstance(node, list):
        return node[0] if node else None
    return node


class TicketValidator:
    """
    Parses CAS validation responses

    Stateless: the same version and body always give the same outcome.
    Errors are returned inside ValidationFailure, never logged here.
    """

    def __init__(self):
        self._parsers = {
            '1.0': self._validate_cas1,
            '2.0': self._validate_cas23,
            '3.0': self._validate_cas23,
        }

    def validate(self, protocol_version: str, body: Optional[str]) -> ValidationOutcome:
        """
        Parse a CAS validation response

        Args:
            protocol_version: CAS protocol version the body was produced for
            body: Raw response body

        Returns:
            ValidationSuccess or ValidationFailure

        Raises:
            ConfigurationError: If the protocol version is not supported
        """
        try:
            parser = self._parsers[protocol_version]
        except KeyError:
            raise ConfigurationError(
                f'The supplied CAS version ("{protocol_version}") is not supported. '
                f'Expected one of {", ".join(SUPPORTED_VERSIONS)}.'
            )
        return parser(body or '')

    def _validate_cas1(self, body: str) -> ValidationOutcome:
        lines = body.split('\n')
        if lines[0] == 'yes' and len(lines) >= 2:
            if not lines[1].strip():
                return ValidationFailure(MalformedResponse("CAS success response carries no user."))
            return ValidationSuccess(principal=lines[1])
        if lines[0] == 'no':
            return ValidationFailure(AuthenticationRejected())
        return ValidationFailure(MalformedResponse())

    def _validate_cas23(self, body: str) -> ValidationOutcome:
        try:
            document = xmltodict.parse(body, postprocessor=_normalize_node)
        except ExpatError:
            return ValidationFailure(MalformedResponse())

        if not document or 'serviceresponse' not in document:
            return ValidationFailure(MalformedResponse("CAS response has no serviceResponse element."))

        response = document['serviceresponse']
        if not isinstance(response, dict):
            response = {}

        if 'authenticationfailure' in response:
            failure = _first(response['authenticationfailure'])
            code = failure.get('@code') if isinstance(failure, dict) else None
            return ValidationFailure(AuthenticationRejected(
                code=code,
                description=_text(failure)
            ))

        if 'authenticationsuccess' in response:
            success = _first(response['authenticationsuccess'])
            if not isinstance(success, dict) or not _text(success.get('user')):
                return ValidationFailure(MalformedResponse("CAS success response carries no user."))

            attributes = None
            if 'attributes' in success:
                attributes = _attributes(success['attributes'])

            return ValidationSuccess(principal=_text(success['user']), attributes=attributes)

        return ValidationFailure(AuthenticationRejected())
