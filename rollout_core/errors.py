class RolloutError(Exception):
    """Base error for the deployments core."""


class RecoverableError(RolloutError):
    """Indicates the operation can be retried safely."""


class PermanentError(RolloutError):
    """Indicates the operation should not be retried."""


class ValidationError(RolloutError):
    """Input validation failure."""


class InvalidValueError(ValidationError):
    """A status or type value outside its closed vocabulary."""


class InvalidDeploymentDefinitionError(ValidationError):
    """Invalid deployments definition."""


class InvalidFieldError(InvalidDeploymentDefinitionError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field


class NoDevicesError(InvalidDeploymentDefinitionError):
    def __init__(self) -> None:
        super().__init__(
            "Invalid deployments definition: "
            "provide list of devices or set all_devices flag"
        )


class DevicesConflictError(InvalidDeploymentDefinitionError):
    def __init__(self) -> None:
        super().__init__(
            "Invalid deployments definition: "
            "list of devices provided together with all_devices flag"
        )


class GroupTargetingConflictError(InvalidDeploymentDefinitionError):
    def __init__(self) -> None:
        super().__init__(
            "The deployment for group constructor should have "
            "neither list of devices nor all_devices flag set"
        )


class NotFoundError(RolloutError):
    """The requested object or record does not exist."""


class ObjectNotFoundError(NotFoundError):
    """Object not found in storage."""


class DeploymentNotFoundError(NotFoundError):
    def __init__(self, deployment_id: str) -> None:
        super().__init__(f"Deployment not found: {deployment_id}")
        self.deployment_id = deployment_id


class ConflictError(RolloutError):
    """A write collided with an existing record."""


class StorageOpError(RecoverableError):
    def __init__(
        self,
        op: str,
        message: str,
        reason: BaseException | None = None,
    ) -> None:
        text = f"{op}: {message}"
        if reason is not None:
            text = f"{text}: {reason}"
        super().__init__(text)
        self.op = op
        self.reason = reason
