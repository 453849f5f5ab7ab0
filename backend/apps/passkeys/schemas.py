"""
Pydantic schemas for passkey API endpoints.

Binary WebAuthn members (challenges, credential IDs, user handles, client
data, signatures) are ``Base64URLBytes``: validated as unpadded base64url
on the way in and serialized back to it on the way out. Field aliases carry
the camelCase names of the WebAuthn JSON serialization, so routes returning
these schemas are declared with ``by_alias=True``.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from apps.core.schemas import Base64URLBytes

# --- WebAuthn credential shapes (browser -> server) ---


class _WebAuthnModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AttestationResponse(_WebAuthnModel):
    """``AuthenticatorAttestationResponse`` from navigator.credentials.create()."""

    client_data_json: Base64URLBytes = Field(alias="clientDataJSON")
    attestation_object: Base64URLBytes = Field(alias="attestationObject")
    transports: list[str] | None = None


class AssertionResponse(_WebAuthnModel):
    """``AuthenticatorAssertionResponse`` from navigator.credentials.get()."""

    client_data_json: Base64URLBytes = Field(alias="clientDataJSON")
    authenticator_data: Base64URLBytes = Field(alias="authenticatorData")
    signature: Base64URLBytes
    user_handle: Base64URLBytes | None = Field(default=None, alias="userHandle")


class _PublicKeyCredential(_WebAuthnModel):
    id: str = Field(min_length=1)
    raw_id: Base64URLBytes = Field(alias="rawId")
    type: Literal["public-key"]
    authenticator_attachment: str | None = Field(default=None, alias="authenticatorAttachment")
    client_extension_results: dict[str, Any] = Field(
        default_factory=dict, alias="clientExtensionResults"
    )

    def to_webauthn_json(self) -> dict[str, Any]:
        """Dump back to the WebAuthn JSON shape the verifier parses."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RegistrationCredential(_PublicKeyCredential):
    response: AttestationResponse


class AuthenticationCredential(_PublicKeyCredential):
    response: AssertionResponse


# --- WebAuthn option shapes (server -> browser) ---


class CredentialDescriptor(_WebAuthnModel):
    type: Literal["public-key"] = "public-key"
    id: Base64URLBytes
    transports: list[str] | None = None


class RelyingParty(_WebAuthnModel):
    id: str | None = None
    name: str


class UserEntity(_WebAuthnModel):
    id: Base64URLBytes
    name: str
    display_name: str = Field(alias="displayName")


class CredentialParameter(_WebAuthnModel):
    type: Literal["public-key"] = "public-key"
    alg: int


class CreationOptions(_WebAuthnModel):
    """``PublicKeyCredentialCreationOptions`` for navigator.credentials.create()."""

    rp: RelyingParty
    user: UserEntity
    challenge: Base64URLBytes
    pub_key_cred_params: list[CredentialParameter] = Field(alias="pubKeyCredParams")
    timeout: int | None = None
    exclude_credentials: list[CredentialDescriptor] = Field(
        default_factory=list, alias="excludeCredentials"
    )
    authenticator_selection: dict[str, Any] | None = Field(
        default=None, alias="authenticatorSelection"
    )
    attestation: str | None = None
    hints: list[str] | None = None


class RequestOptions(_WebAuthnModel):
    """``PublicKeyCredentialRequestOptions`` for navigator.credentials.get()."""

    challenge: Base64URLBytes
    timeout: int | None = None
    rp_id: str | None = Field(default=None, alias="rpId")
    allow_credentials: list[CredentialDescriptor] = Field(
        default_factory=list, alias="allowCredentials"
    )
    user_verification: str | None = Field(default=None, alias="userVerification")
    hints: list[str] | None = None


# --- Registration ---


class RegisterBeginRequest(BaseModel):
    """Start registering a passkey.

    ``user_name`` is required for first-time setup and ignored afterwards.
    """

    user_name: str | None = Field(default=None)
    passkey_name: str | None = Field(default=None)


class RegisterBeginResponse(BaseModel):
    kind: Literal["registration"] = "registration"
    challenge_id: str = Field(description="Challenge ID to send back with the credential")
    options: CreationOptions


class RegisterCompleteRequest(BaseModel):
    challenge_id: str = Field(min_length=1)
    credential: RegistrationCredential


class RegisterCompleteResponse(BaseModel):
    user_name: str
    passkey_id: int
    is_new_user: bool


# --- Login ---


class LoginBeginRequest(BaseModel):
    """Start a passkey login, optionally handing the session to another origin."""

    redirect_origin: str | None = None
    redirect_path: str | None = None


class LoginBeginResponse(BaseModel):
    kind: Literal["authentication"] = "authentication"
    challenge_id: str = Field(description="Challenge ID to send back with the assertion")
    options: RequestOptions


class LoginCompleteRequest(BaseModel):
    challenge_id: str = Field(min_length=1)
    credential: AuthenticationCredential


class LoginCompleteResponse(BaseModel):
    user_name: str
    redirect_url: str | None = Field(
        default=None,
        description="URL on the requested redirect origin that completes the session handoff",
    )


# --- Management ---


class PasskeyListItem(BaseModel):
    id: int
    name: str
    created: datetime
    last_used: datetime | None = None


class PasskeyRenameRequest(BaseModel):
    name: str


class PasskeyDeleteResponse(BaseModel):
    success: bool = True
