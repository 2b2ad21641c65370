"""Booking API adapter - HTTP client for profiles and appointments."""

import logging

import requests

from rendezvous.config import Config, Tokens, load_config
from rendezvous.core.appointments import Appointment
from rendezvous.core.errors import BookingError
from rendezvous.core.profile import AvailabilityProfile

logger = logging.getLogger(__name__)


class AuthenticationError(BookingError):
    """Raised when the session is missing or rejected."""

    pass


class RemoteRejectionError(BookingError):
    """Raised when the server refuses a request the client thought valid."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class BookingApiAdapter:
    """
    REST adapter for the booking server.

    Implements BookingRepository protocol. Authentication, request plumbing
    and JSON mapping only - no business logic.
    """

    def __init__(self, config: Config | None = None, tokens: Tokens | None = None):
        self.config = config or load_config()
        self.tokens = tokens or Tokens.load()
        self._session = requests.Session()
        if self.tokens.jwt:
            self._session.cookies.set("jwt", self.tokens.jwt)

    @property
    def user_id(self) -> str:
        return self.config.user_id or self.tokens.user_id

    def _url(self, endpoint: str) -> str:
        return f"{self.config.api_url}{endpoint}"

    def _request(self, method: str, endpoint: str, payload: dict | None = None):
        """Make an authenticated request and return the decoded JSON body."""
        if not self.tokens.jwt:
            raise AuthenticationError("Not logged in. Run 'rendezvous login' first.")

        logger.debug(f"{method} {endpoint}")
        try:
            resp = self._session.request(
                method,
                self._url(endpoint),
                json=payload,
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            raise RemoteRejectionError(f"Could not reach the booking server: {e}") from e

        if resp.status_code == 401:
            raise AuthenticationError("Session expired. Run 'rendezvous login' again.")
        if resp.status_code >= 400:
            raise RemoteRejectionError(_error_message(resp), status_code=resp.status_code)

        if not resp.content:
            return None
        return resp.json()

    # ---- session ----

    def login(self, email: str, password: str) -> Tokens:
        """Log in and persist the session cookie."""
        resp = self._session.post(
            self._url("/auth/login"),
            json={"email": email, "password": password},
            timeout=self.config.request_timeout,
        )
        if resp.status_code != 200:
            raise AuthenticationError(f"Login failed: {_error_message(resp)}")

        jwt = resp.cookies.get("jwt") or self._session.cookies.get("jwt")
        if not jwt:
            raise AuthenticationError("Login succeeded but no session cookie was returned")

        user = (resp.json() or {}).get("user") or {}
        self.tokens = Tokens(jwt=jwt, user_id=str(user.get("_id") or user.get("id") or ""))
        self.tokens.save()
        return self.tokens

    # ---- availability ----

    def fetch_profile(self, owner_id: str) -> AvailabilityProfile:
        data = self._request("GET", f"/appointments/availability/{owner_id}") or {}
        # Newer servers wrap the profile; older ones return it bare
        if "availability" in data:
            return AvailabilityProfile.from_api(data.get("availability"), data.get("availabilityStatus"))
        return AvailabilityProfile.from_api(data)

    def save_profile(self, profile: AvailabilityProfile) -> AvailabilityProfile:
        data = self._request("POST", "/appointments/availability", profile.validate().to_api()) or {}
        if "availability" in data:
            return AvailabilityProfile.from_api(data.get("availability"), data.get("availabilityStatus"))
        return profile

    # ---- appointments ----

    def list_appointments(self) -> list[Appointment]:
        return [Appointment.from_api(a) for a in self._request("GET", "/appointments") or []]

    def list_user_appointments(self, user_id: str) -> list[Appointment]:
        return [Appointment.from_api(a) for a in self._request("GET", f"/appointments/friend/{user_id}") or []]

    def fetch_appointment(self, appointment_id: str) -> Appointment:
        return Appointment.from_api(self._request("GET", f"/appointments/{appointment_id}"))

    def create_appointment(self, appointment: Appointment) -> Appointment:
        payload = appointment.to_api()
        payload.pop("userId", None)  # the server takes the creator from the session
        return Appointment.from_api(self._request("POST", "/appointments", payload))

    def update_appointment(self, appointment_id: str, fields: dict) -> Appointment:
        return Appointment.from_api(self._request("PUT", f"/appointments/{appointment_id}", fields))

    def delete_appointment(self, appointment_id: str) -> None:
        self._request("DELETE", f"/appointments/{appointment_id}")


def _error_message(resp: requests.Response) -> str:
    """Server-provided message, falling back to the status line."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {resp.status_code}: {resp.text[:200] or resp.reason}"
