from __future__ import annotations

from abc import ABC, abstractmethod

from ramp_pricing.core.types import Fee, FeeDirection, TransactionSpecification, UserData


class FeeRepository(ABC):
    @abstractmethod
    def find_fee(self, fee_id: int) -> Fee | None:
        raise NotImplementedError

    @abstractmethod
    def find_fee_by_label(self, label: str, direction: FeeDirection | None) -> Fee | None:
        raise NotImplementedError

    @abstractmethod
    def find_fee_by_discount_code(self, discount_code: str) -> Fee | None:
        raise NotImplementedError

    @abstractmethod
    def find_fee_candidates(self, fee_ids: list[int]) -> list[Fee]:
        """All base fees, all discount fees without a code, and the given fee ids."""
        raise NotImplementedError

    @abstractmethod
    def save_fee(self, fee: Fee) -> Fee:
        raise NotImplementedError


class TransactionSpecificationRepository(ABC):
    @abstractmethod
    def find_all_specs(self) -> list[TransactionSpecification]:
        raise NotImplementedError

    @abstractmethod
    def save_spec(self, spec: TransactionSpecification) -> None:
        raise NotImplementedError


class UserDataStore(ABC):
    @abstractmethod
    def get_user_data(self, user_data_id: int) -> UserData | None:
        raise NotImplementedError

    @abstractmethod
    def save_user_data(self, user_data: UserData) -> None:
        raise NotImplementedError

    @abstractmethod
    def add_fee(self, user_data_id: int, fee_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def remove_fee(self, user_data_id: int, fee_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def count_fee_usages(self, fee_id: int) -> int:
        raise NotImplementedError
