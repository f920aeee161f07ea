SUPPORTED_LANGS = ["en"]

MESSAGES = {
    # ── Customer dialog ──────────────────────────────────────
    "WELCOME": {
        "en": "Welcome to our Food Ordering service! How can we help you today?",
    },
    "CATALOG_PROMPT": {
        "en": "Tap below to see our menu and add items to your cart. 😋",
    },
    "CATALOG_HINT": {
        "en": "Please choose items from our menu by clicking 'View items' and submit your cart.",
    },
    "CART_SUMMARY": {
        "en": "🛒 *Your cart*\n{lines}\n\nTotal: {total}",
    },
    "CART_ACTIONS": {
        "en": "Tap Checkout when you're ready, or keep adding items from the menu.",
    },
    "CART_EMPTY": {
        "en": "Your cart is empty. Add items from the menu before checking out.",
    },
    "CART_CLEARED": {
        "en": "Your cart has been cleared.",
    },
    "ASK_NAME": {
        "en": "Great! What name should we put on the order?",
    },
    "ASK_ADDRESS": {
        "en": "Thanks {name}! Please type your delivery address or share your location.",
    },
    "ASK_PAYMENT": {
        "en": "How would you like to pay?",
    },
    "INVALID_PAYMENT": {
        "en": "Please choose one of the payment options below.",
    },
    "CONFIRM_SUMMARY": {
        "en": (
            "*Order summary*\n{lines}\n\n"
            "Total: {total}\n"
            "Name: {name}\n"
            "Address: {address}\n"
            "Payment: {payment}\n\n"
            "Shall we place the order?"
        ),
    },
    "ORDER_PLACED": {
        "en": (
            "Great! Your order *{order_number}* has been sent to *{vendor}*.\n\n"
            "We're just waiting for them to confirm your order. We'll notify you in a moment!"
        ),
    },
    "ORDER_RETRY": {
        "en": "⚠️ We couldn't place your order right now. Your cart is saved, please tap Place Order again in a moment.",
    },
    "NO_VENDOR": {
        "en": (
            "We're sorry, we couldn't find a restaurant that can take your order at the moment. "
            "Your cart is saved, please try again later."
        ),
    },
    "CONTACT": {
        "en": "You can reach us at {contact}.",
    },
    "HELP": {
        "en": 'Use the buttons to navigate. Select "Order Now" to see our menu!',
    },
    "NOT_VERIFIED": {
        "en": "Sorry, this number isn't registered for ordering yet. You can reach us at {contact}.",
    },
    "TRACK_NONE": {
        "en": "You have no open orders right now.",
    },
    "TRACK_HEADER": {
        "en": "📦 *Your orders*\n{lines}",
    },
    "TRACK_UNAVAILABLE": {
        "en": "We couldn't look up your orders right now. Please try again in a moment.",
    },

    # ── Order lifecycle: vendor ──────────────────────────────
    "VENDOR_NEW_ORDER": {
        "en": (
            "*New Order Alert: {order_number}*\n\n"
            "Items:\n{items}\n\n"
            "Total: {total}\n"
            "Deliver to: {address}\n\n"
            'Tap a button or reply "accept {order_number}" or "reject {order_number}"'
        ),
    },
    "CUSTOMER_ACCEPTED": {
        "en": (
            "✅ Good news! *{vendor}* has accepted your order *{order_number}*.\n\n"
            "Estimated preparation time is 15-20 minutes."
        ),
    },
    "CUSTOMER_REJECTED": {
        "en": (
            "❌ We're sorry, but *{vendor}* is unable to fulfill your order *{order_number}* "
            "at the moment. Please try ordering again later."
        ),
    },
    "ADMIN_REJECTED": {
        "en": "⚠️ Order {order_number} for {customer} was rejected by {vendor}. Manual follow-up needed.",
    },

    # ── Order lifecycle: delivery ────────────────────────────
    "DP_TASK": {
        "en": (
            "*New Delivery Task: {order_number}*\n\n"
            "Pickup from: *{vendor}*\n"
            "Deliver to: {address}\n\n"
            'Reply "pickedup {order_number}" once you collect the order.'
        ),
    },
    "CUSTOMER_DP_ASSIGNED": {
        "en": "🛵 A delivery partner, *{partner}*, has been assigned to your order!",
    },
    "CUSTOMER_DP_PENDING": {
        "en": "We're currently finding a delivery partner. We'll update you shortly.",
    },
    "ADMIN_NO_DP": {
        "en": "⚠️ Order {order_number} was accepted by {vendor} but no delivery partner is available.",
    },
    "DP_NEXT_OUT": {
        "en": 'Order {order_number} picked up. Reply "out for delivery {order_number}" when you leave.',
    },
    "DP_NEXT_DELIVERED": {
        "en": 'Order {order_number} is on the way. Reply "delivered {order_number}" once handed over.',
    },
    "TIMELINE_PICKED_UP": {
        "en": (
            "✅ Order Confirmed\n✅ Food is being prepared\n✅ Picked up by Delivery Partner\n\n"
            "Your order *{order_number}* has been collected."
        ),
    },
    "TIMELINE_OUT_FOR_DELIVERY": {
        "en": (
            "✅ Order Confirmed\n✅ Food is being prepared\n✅ Picked up by Delivery Partner\n"
            "_... On the way!_\n\n"
            "Your order is on its way! Estimated delivery time is {eta} minutes."
        ),
    },
    "TIMELINE_DELIVERED": {
        "en": (
            "✅ Order Confirmed\n✅ Food is being prepared\n✅ Picked up by Delivery Partner\n✅ Delivered!\n\n"
            "We hope you enjoy your meal! 😊"
        ),
    },
    "RATING_PROMPT": {
        "en": "How was your experience with order {order_number}? Please rate us from 1 (Poor) to 5 (Excellent)!",
    },
    "FEEDBACK_THANKS": {
        "en": "🙏 Thanks for rating order *{order_number}* {rating}/5!",
    },
    "FEEDBACK_REJECTED": {
        "en": "We can only take a rating for a delivered order. Order *{order_number}* is {status}.",
    },
    "FEEDBACK_UNAVAILABLE": {
        "en": "We couldn't record your rating right now. Please send it again in a moment.",
    },
    "TRY_AGAIN": {
        "en": "⚠️ Something went wrong on our side and your last message wasn't saved. Please try again.",
    },

    # ── Operator acknowledgements ────────────────────────────
    "ORDER_NOT_FOUND": {
        "en": "Order {order_number} not found.",
    },
    "NOT_ASSIGNED": {
        "en": "Order {order_number} is not assigned to you.",
    },
    "ALREADY_HANDLED": {
        "en": "Order {order_number} is already {status}; nothing to do.",
    },
    "OPERATOR_ACK": {
        "en": "Order {order_number} is now {status}.",
    },
    "OPERATOR_RETRY": {
        "en": "⚠️ Couldn't update order {order_number} right now. Please send the command again in a moment.",
    },
    "OPERATOR_HELP": {
        "en": (
            "Reply with a command and the order number, e.g. \"accept ORD-123\".\n"
            "Commands: accept, reject, pickedup, out for delivery, delivered."
        ),
    },
}

STATUS_LABELS = {
    "PENDING_VENDOR_CONFIRMATION": "waiting for restaurant confirmation",
    "VENDOR_ACCEPTED": "accepted by the restaurant",
    "VENDOR_REJECTED": "rejected by the restaurant",
    "AWAITING_PICKUP": "waiting for pickup",
    "PROCESSING": "picked up",
    "OUT_FOR_DELIVERY": "out for delivery",
    "DELIVERED": "delivered",
    "COMPLETED": "completed",
}


def t(key: str, lang: str = "en", **kwargs) -> str:
    lang = lang if lang in SUPPORTED_LANGS else "en"
    text = MESSAGES[key][lang]
    return text.format(**kwargs) if kwargs else text


def status_label(status) -> str:
    value = getattr(status, "value", status)
    return STATUS_LABELS.get(value, str(value).lower())
