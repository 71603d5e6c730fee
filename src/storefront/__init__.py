"""Storefront — cart pricing, order/payment lifecycles and payment status sync."""
