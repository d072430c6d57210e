# fulfillment/repos/customer_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from fulfillment.data.models.customer import CustomerModel


class CustomerRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_external_id(self, external_id: str) -> CustomerModel | None:
        return self.db.execute(
            select(CustomerModel).where(CustomerModel.external_id == external_id)
        ).scalar_one_or_none()

    def create_customer(self, customer: CustomerModel) -> CustomerModel:
        self.db.add(customer)
        self.db.flush()
        return customer
