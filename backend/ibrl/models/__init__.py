from ibrl.models.automation import Automation
from ibrl.models.proposal import Proposal
from ibrl.models.price_sample import PriceSample
from ibrl.models.interaction import Interaction
from ibrl.models.meta import Meta

__all__ = ["Automation", "Proposal", "PriceSample", "Interaction", "Meta"]
