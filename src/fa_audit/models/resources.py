"""Resource-level capability facts for coins and fungible assets."""

from pydantic import BaseModel, Field

from fa_audit.models.findings import Finding


class HookModule(BaseModel):
    """A dispatch hook registered on a fungible asset."""

    model_config = {"frozen": True}

    module_address: str = Field(description="Hook module address")
    module_name: str = Field(description="Hook module name")
    function_name: str = Field(description="Hook function name")

    @property
    def module_id(self) -> str:
        return f"{self.module_address}::{self.module_name}"


class CoinResourceFacts(BaseModel):
    """Capabilities and supply parsed from a coin publisher's resources."""

    model_config = {"frozen": True}

    coin_type: str = Field(description="Full coin type")
    publisher_address: str = Field(description="Publisher address")
    module_name: str = Field(description="Defining module name")
    name: str | None = Field(default=None, description="Coin name")
    symbol: str | None = Field(default=None, description="Coin symbol")
    decimals: int = Field(default=6, description="Decimals")
    supply_current_base: str | None = Field(default=None, description="Current supply, base units")
    supply_max_base: str | None = Field(default=None, description="Declared max supply")
    owner: str | None = Field(default=None, description="Owner address if declared")
    admin: str | None = Field(default=None, description="Admin address if declared")
    has_mint_cap: bool = Field(default=False)
    has_burn_cap: bool = Field(default=False)
    has_freeze_cap: bool = Field(default=False)
    has_transfer_restrictions: bool = Field(default=False)
    resource_types: list[str] = Field(default_factory=list, description="Observed resource types")
    findings: list[Finding] = Field(default_factory=list, description="Resource-level findings")


class FaResourceFacts(BaseModel):
    """Ownership, refs, hooks and supply parsed from an FA object's resources."""

    model_config = {"frozen": True}

    fa_address: str = Field(description="FA object address")
    owner: str | None = Field(default=None, description="Object owner")
    creator: str | None = Field(default=None, description="Creator address if known")
    name: str | None = Field(default=None, description="Asset name")
    symbol: str | None = Field(default=None, description="Asset symbol")
    decimals: int | None = Field(default=None, description="Decimals")
    supply_current_base: str | None = Field(default=None, description="Current supply")
    supply_max_base: str | None = Field(default=None, description="Max supply")
    has_mint_ref: bool = Field(default=False)
    has_burn_ref: bool = Field(default=False)
    has_transfer_ref: bool = Field(default=False)
    ref_holders: dict[str, str] = Field(
        default_factory=dict,
        description="Holder address per ref kind (mint, burn, transfer)",
    )
    hooks: dict[str, str] = Field(
        default_factory=dict,
        description="Hook slot -> addr::module::function",
    )
    hook_modules: list[HookModule] = Field(default_factory=list, description="Hook modules")
    resource_types: list[str] = Field(default_factory=list, description="Observed resource types")
    findings: list[Finding] = Field(default_factory=list, description="Resource-level findings")

    @property
    def has_deposit_hook(self) -> bool:
        return "deposit" in self.hooks

    @property
    def has_withdraw_hook(self) -> bool:
        return "withdraw" in self.hooks

    @property
    def has_derived_balance_hook(self) -> bool:
        return "derived_balance" in self.hooks
