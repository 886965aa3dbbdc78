#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Enumerations for the storefront checkout service.

This module defines the enums used throughout the service to represent the
checkout step, the state of a payment attempt, shipping choices, and the shape
of the POS tax configuration.
"""

import enum


class CheckoutStep(enum.IntEnum):
  CUSTOMER_INFO = 1
  SHIPPING = 2
  PAYMENT = 3
  REVIEW = 4


class PaymentStatus(str, enum.Enum):
  PENDING = "pending"
  PROCESSING = "processing"
  SUCCESS = "success"
  FAILED = "failed"


class ShippingMethod(str, enum.Enum):
  STANDARD = "standard"
  EXPRESS = "express"


class TaxType(str, enum.Enum):
  PERCENTAGE = "percentage"
  FIXED = "fixed"


class AuditStatus(str, enum.Enum):
  SUCCESS = "success"
  WARNING = "warning"
  ERROR = "error"
  INFO = "info"


class AuditSeverity(str, enum.Enum):
  LOW = "low"
  MEDIUM = "medium"
  HIGH = "high"
  CRITICAL = "critical"
