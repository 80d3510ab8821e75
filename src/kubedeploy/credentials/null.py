from kubedeploy.credentials.config import CredentialResolutionError, CredentialResolver, RegistryToken


class NullCredentialResolver(CredentialResolver):
    def resolve(self, credentials_id: str) -> RegistryToken:
        raise CredentialResolutionError(credentials_id, "no credentials provider is configured")
