from __future__ import annotations

from typing import Any, Callable

THEFT_CONTEXTS: dict[str, tuple[str, ...]] = {
    "excellent": (
        "Your success has made you a target for desperate criminals.",
        "High-profile dealers like yourself attract unwanted attention.",
        "Your reputation for carrying large amounts of cash precedes you.",
    ),
    "good": (
        "Word of your growing wealth has spread through the streets.",
        "Success brings visibility, and visibility brings risks.",
        "Your improving fortunes haven't gone unnoticed by predators.",
    ),
    "average": (
        "The streets are dangerous for anyone carrying cash.",
        "Random crime is an occupational hazard in this business.",
        "Even modest success can attract the wrong kind of attention.",
    ),
    "poor": (
        "Desperation breeds desperation. Even struggling dealers are targets.",
        "The streets show no mercy, even to those barely getting by.",
        "In this neighborhood, anyone with anything is a potential victim.",
    ),
}

GANG_FIGHT_CONTEXTS: dict[str, tuple[str, ...]] = {
    "excellent": (
        "Your success has put you in the middle of territorial disputes between major players.",
        "High-level operations inevitably involve conflicts with established gangs.",
        "Your growing influence threatens existing power structures.",
    ),
    "good": (
        "Your expanding territory brings you into conflict with local gangs.",
        "Success in this business means stepping on toes and making enemies.",
        "Your growing reputation attracts challenges from rival operations.",
    ),
    "average": (
        "Gang violence is a constant threat on these streets.",
        "Territorial disputes can involve anyone operating in contested areas.",
        "The streets are controlled by gangs, and conflicts are inevitable.",
    ),
    "poor": (
        "Even small-time dealers get caught in gang crossfire.",
        "Desperation forces you into dangerous territories controlled by gangs.",
        "When you're struggling, you can't afford to avoid gang-controlled areas.",
    ),
}

TIP_CONTEXTS: dict[str, tuple[str, ...]] = {
    "excellent": (
        "Your network of high-level contacts shares valuable market intelligence.",
        "Successful dealers like yourself have access to premium information sources.",
        "Your reputation opens doors to exclusive insider information.",
    ),
    "good": (
        "Your growing connections in the business provide useful tips.",
        "Building relationships pays off with valuable market information.",
        "Your improving reputation earns you access to better intelligence.",
    ),
    "average": (
        "Street-level information networks occasionally provide useful tips.",
        "Casual contacts in the business sometimes share market insights.",
        "Word-of-mouth intelligence is a valuable resource in this trade.",
    ),
    "poor": (
        "Even struggling dealers occasionally overhear useful information.",
        "Desperation makes you more attentive to any potential opportunities.",
        "When you're barely surviving, every tip could be a lifeline.",
    ),
}

MECHANIC_INTRODUCTIONS: dict[str, dict[str, str]] = {
    "loan_shark": {
        "excellent": "Your success has attracted attention from loan sharks who see you as a reliable investment.",
        "good": "Word of your growing business has reached the loan sharks. They're offering deals.",
        "average": "A loan shark approaches, sensing an opportunity with someone who needs capital.",
        "poor": "Desperate times call for desperate measures. A loan shark offers high-risk money.",
    },
    "inventory_expansion": {
        "excellent": "Your reputation opens doors to premium storage solutions and expansion opportunities.",
        "good": "Success brings opportunities. Someone offers to help expand your operation.",
        "average": "You've found a way to increase your carrying capacity through street connections.",
        "poor": "Even in tough times, opportunities arise to expand your limited resources.",
    },
    "vehicle_upgrade": {
        "excellent": "Your wealth attracts dealers offering premium transportation with maximum safety.",
        "good": "Your growing success allows you to consider better, safer transportation options.",
        "average": "You've earned enough respect to access better vehicles for safer travel.",
        "poor": "Even with limited funds, you've found a way to upgrade from walking the dangerous streets.",
    },
    "police_encounter": {
        "excellent": "Your high profile has attracted unwanted attention from law enforcement.",
        "good": "Success comes with risks. The police are starting to notice your activities.",
        "average": "The streets are dangerous, and law enforcement is always a threat.",
        "poor": "Desperation makes you careless, increasing your risk of police encounters.",
    },
}


def format_money(amount: int | float) -> str:
    return f"${int(amount):,}"


def phase_context(pools: dict[str, tuple[str, ...]], performance: str, phase: int) -> str:
    options = pools.get(performance, pools["average"])
    return options[min(max(phase, 0), len(options) - 1)]


def market_surge_context(performance: str, item: str) -> str:
    contexts = {
        "excellent": f"Your network of contacts alerts you to the {item} shortage before most dealers catch on.",
        "good": f"Your growing reputation gives you early access to information about the {item} market surge.",
        "average": f"Street rumors about {item} shortages are starting to circulate.",
        "poor": f"Even struggling dealers hear about the {item} price spike eventually.",
    }
    return contexts.get(performance, contexts["average"])


def mechanic_introduction(kind: str, performance: str) -> str:
    introductions = MECHANIC_INTRODUCTIONS.get(kind)
    if introductions is None:
        return ""
    return introductions.get(performance, introductions["average"])


def _describe_vehicle_deal(params: dict[str, Any]) -> str:
    vehicle = params.get("vehicle")
    if not vehicle:
        return "Someone is offering to sell you a vehicle, but there's nothing you don't already own."
    return (
        f"Someone is offering to sell you a {vehicle} at {round(params['discount_percentage'])}% off "
        f"({format_money(params['discounted_price'])})!"
    )


EVENT_DESCRIPTIONS: dict[str, Callable[[dict[str, Any]], str]] = {
    "market_surge": lambda params: f"Word on the street is that {params['item']} prices are going through the roof!",
    "market_crash": lambda params: f"Bad news hits the streets: {params['item']} prices are plummeting!",
    "theft": lambda params: "You got mugged! They took some of your cash.",
    "cheap_deal": lambda params: (
        f"Someone is offering {params['quantity']} {params['item']} at {params['discount_percentage']}% off "
        f"({format_money(params['discounted_price'] or 0)} each)!"
    ),
    "bulk_seller": lambda params: (
        f"Someone wants to offload {params['quantity']} {params['item']} quickly at "
        f"{format_money(params['discounted_price'] or 0)} each!"
    ),
    "loan_shark": lambda params: (
        f"A loan shark offers you {format_money(params['loan_amount'])} at {round(params['interest_rate'])}% interest. "
        f"You'd have {params['days_to_repay']} days to repay {format_money(params['repayment_amount'])}."
    ),
    "police_encounter": lambda params: "The cops are onto you!",
    "police_raid": lambda params: "Sirens everywhere! The cops are raiding the area!",
    "gang_fight": lambda params: "You got caught in the middle of a gang war!",
    "rival_dealer": lambda params: (
        f"You've wandered into another dealer's turf. They want {format_money(params['tax_amount'])} to let you operate."
    ),
    "tip": lambda params: "Someone gives you information about profitable opportunities...",
    "vehicle_theft": lambda params: "Your vehicle was stolen while you weren't looking!",
    "vehicle_deal": _describe_vehicle_deal,
    "inventory_expansion": lambda params: "You found a way to expand your carrying capacity!",
    "safe_house": lambda params: "You discover a secure location to store extra inventory...",
    "lucky_find": lambda params: "You find some cash someone dropped!",
    "abandoned_stash": lambda params: "You stumble upon someone's hidden stash!",
    "insider_info": lambda params: "A well-connected contact whispers about upcoming market changes...",
    "desperate_buyer": lambda params: f"A buyer is willing to pay premium prices for {params['item']}!",
    "counterfeit_goods": lambda params: f"You hear rumors about fake {params['item']} flooding the market...",
    "undercover_cop": lambda params: "Something feels off about that buyer... could be a setup!",
    "informant": lambda params: "You recognize someone who might be feeding info to the cops...",
    "gang_recruitment": lambda params: (
        f'Local gang members approach you with a "business proposition": '
        f"{format_money(params['protection_fee'])} for protection."
    ),
    "street_contact": lambda params: "You meet someone who could be useful for future business...",
    "equipment_upgrade": lambda params: (
        f"Someone offers to sell you {params['benefit']} for {format_money(params['upgrade_cost'])}."
    ),
}


def describe_event(event_id: str, params: dict[str, Any]) -> str:
    builder = EVENT_DESCRIPTIONS.get(event_id)
    if builder is None:
        return "Something unexpected happens on the street."
    return builder(params)


def event_story_context(event_id: str, params: dict[str, Any], performance: str, phase: int) -> str:
    if event_id == "loan_shark":
        return mechanic_introduction("loan_shark", performance)
    if event_id == "theft":
        return phase_context(THEFT_CONTEXTS, performance, phase)
    if event_id == "market_surge":
        return market_surge_context(performance, params["item"])
    if event_id == "police_encounter":
        return mechanic_introduction("police_encounter", performance)
    if event_id == "gang_fight":
        return phase_context(GANG_FIGHT_CONTEXTS, performance, phase)
    if event_id == "vehicle_deal":
        return mechanic_introduction("vehicle_upgrade", performance)
    if event_id == "inventory_expansion":
        return mechanic_introduction("inventory_expansion", performance)
    if event_id == "tip":
        return phase_context(TIP_CONTEXTS, performance, phase)
    return ""


def story_enhanced_description(event_id: str, params: dict[str, Any], performance: str, phase: int) -> str:
    base = describe_event(event_id, params)
    context = event_story_context(event_id, params, performance, phase)
    return f"{context}\n\n{base}" if context else base


def performance_narrative(performance: str, starting_cash: int, cash: int) -> str:
    if performance == "excellent":
        return (
            f"Your success has been remarkable. You've turned {format_money(starting_cash)} into {format_money(cash)}. "
            "The other dealers speak your name with a mixture of respect and envy."
        )
    if performance == "good":
        return (
            f"You've done well for yourself, building your cash from {format_money(starting_cash)} to "
            f"{format_money(cash)}. You're earning respect on the streets."
        )
    if performance == "poor":
        return (
            f"The streets have been tough on you. With only {format_money(cash)} to show for your efforts, "
            "you're struggling to make ends meet. Time is running out to turn things around."
        )
    return (
        f"You're holding your own with {format_money(cash)} in hand. "
        "Not spectacular, but you're surviving in a dangerous business."
    )


CONCLUSION_TIERS: tuple[tuple[float, str], ...] = (
    (10.0, "Legendary Success"),
    (5.0, "Outstanding Achievement"),
    (2.0, "Solid Success"),
    (1.0, "Modest Progress"),
)
FALLBACK_CONCLUSION_TITLE = "Hard Lessons Learned"


def conclusion_title(profit_ratio: float) -> str:
    for threshold, title in CONCLUSION_TIERS:
        if profit_ratio >= threshold:
            return title
    return FALLBACK_CONCLUSION_TITLE


def conclusion_text(title: str, starting_cash: int, final_cash: int) -> str:
    start = format_money(starting_cash)
    final = format_money(final_cash)
    if title == "Legendary Success":
        return (
            f"You've achieved the impossible. Starting with {start}, you've built an empire worth {final}.\n\n"
            "The streets will remember your name for years to come. You've gone from desperate newcomer to "
            "legendary dealer in record time.\n\nYour legend begins here."
        )
    if title == "Outstanding Achievement":
        return (
            f"From {start} to {final}. You've exceeded all expectations.\n\n"
            "You've mastered the art of the deal and navigated the dangers of the street with skill and cunning. "
            "The other dealers look up to you now.\n\nWell done."
        )
    if title == "Solid Success":
        return (
            f"You turned {start} into {final}, a respectable achievement in this dangerous business.\n\n"
            "You've learned the ropes, built connections, and proven you can survive on the streets. "
            "You've got a future in this business if you want it."
        )
    if title == "Modest Progress":
        return (
            f"Starting with {start}, you managed to reach {final}.\n\n"
            "It wasn't easy, and there were setbacks along the way, but you survived. "
            "In this business, sometimes survival is victory enough."
        )
    return (
        f"The streets were harsh. You started with {start} and ended with {final}.\n\n"
        "Not every story has a happy ending, but every failure teaches valuable lessons. "
        "Sometimes the most important victories are the ones that teach us how to fight another day."
    )


def adapted_action_text(action: str, performance: str, details: dict[str, Any]) -> str:
    if action == "major_purchase":
        if details.get("cost", 0) > details.get("cash_after", 0) * 0.5:
            if performance == "excellent":
                return "Another bold investment. Your confidence in high-stakes decisions continues to pay off."
            return "A risky purchase that could make or break your operation."
        return ""
    if action == "vehicle_purchase":
        if performance == "excellent":
            return "Upgrading your transportation shows your commitment to professional operations."
        if performance == "poor":
            return "Every safety improvement matters when you're struggling to survive."
        return "Better transportation means safer operations and reduced risks."
    if action == "large_trade":
        if details.get("earnings", 0) > 10000:
            if performance == "excellent":
                return "Another successful major deal solidifies your reputation as a top-tier operator."
            return "This significant payday could be the turning point in your operation."
        return ""
    return ""


def performance_hints(performance: str, time_progress: float) -> list[str]:
    if performance == "poor" and time_progress > 0.5:
        return [
            "Time is running short. Consider taking bigger risks for bigger rewards.",
            "Look for opportunities to expand your inventory or upgrade your transportation.",
            "High-value items like Cocaine and Heroin offer the best profit margins.",
        ]
    if performance == "excellent" and time_progress < 0.8:
        return [
            "Your success attracts both opportunities and dangers. Stay vigilant.",
            "Consider diversifying your operations across multiple locations.",
            "Your reputation opens doors to exclusive deals and partnerships.",
        ]
    if performance == "average":
        return [
            "Steady progress. Look for opportunities to accelerate your growth.",
            "Building relationships in different neighborhoods can pay off.",
            "Balance risk and reward. Bigger deals mean bigger profits but more danger.",
        ]
    return []


def performance_analysis(metrics: dict[str, float]) -> list[str]:
    analysis: list[str] = []
    if metrics["profit_multiplier"] > 5:
        analysis.append("Exceptional profit generation demonstrates mastery of market dynamics.")
    elif metrics["profit_multiplier"] > 2:
        analysis.append("Strong profit performance shows solid understanding of the business.")
    else:
        analysis.append("Profit margins suggest room for improvement in trading strategies.")

    if metrics["risk_tolerance"] > 0.7:
        analysis.append("High risk tolerance led to bold decisions and significant opportunities.")
    elif metrics["risk_tolerance"] < 0.3:
        analysis.append("Conservative approach prioritized safety over maximum profit potential.")

    if metrics["efficiency"] > 1000:
        analysis.append("Highly efficient operations maximized daily profit potential.")
    return analysis


def recommendations(metrics: dict[str, float]) -> list[str]:
    advice: list[str] = []
    if metrics["profit_multiplier"] < 2:
        advice.append("Focus on high-value items and market timing for better profits.")
        advice.append("Consider taking calculated risks for larger rewards.")

    if metrics["risk_tolerance"] > 0.8:
        advice.append("Balance risk-taking with safety measures like better vehicles.")
    elif metrics["risk_tolerance"] < 0.3:
        advice.append("Consider taking more calculated risks for higher rewards.")

    if metrics["story_engagement"] < 0.5:
        advice.append("Engage more with story events and milestone opportunities.")
    return advice
