"""Host firewall (ufw) and intrusion banning (fail2ban)."""

from proxy_forge.firewall.fail2ban import Fail2banManager
from proxy_forge.firewall.ufw import FirewallChange, UfwFirewall

__all__ = ["Fail2banManager", "FirewallChange", "UfwFirewall"]
