# Filename: log_manifest.py
"""
What the collector gathers.

Snapshot producers always run and their output is always archived. Candidate
globs are optional files added in order until the size budget is hit, so
smaller and more critical files are closer to the top so that we can be
certain they're included. Reordering CANDIDATE_GLOBS changes which files
survive truncation.
"""
from snapshot_producers import CommandProducer, FileCopyProducer, SystemMetricsProducer, TreeCopyProducer

CANDIDATE_GLOBS = [
    # AKS specific entries
    "/etc/cni/net.d/*",
    "/etc/containerd/*",
    "/etc/default/kubelet",
    "/etc/kubernetes/manifests/*",
    "/var/lib/kubelet/kubeconfig",

    # based on MANIFEST_FULL from Azure Linux Agent's log collector
    # https://github.com/Azure/WALinuxAgent/blob/master/azurelinuxagent/common/logcollector_manifests.py
    "/var/lib/waagent/provisioned",
    "/etc/fstab",
    "/etc/ssh/sshd_config",
    "/boot/grub*/grub.c*",
    "/boot/grub*/menu.lst",
    "/etc/*-release",
    "/etc/HOSTNAME",
    "/etc/hostname",
    "/etc/apt/sources.list",
    "/etc/apt/sources.list.d/*",
    "/etc/network/interfaces",
    "/etc/network/interfaces.d/*.cfg",
    "/etc/netplan/*.yaml",
    "/etc/nsswitch.conf",
    "/etc/resolv.conf",
    "/run/systemd/resolve/stub-resolv.conf",
    "/run/resolvconf/resolv.conf",
    "/etc/sysconfig/iptables",
    "/etc/sysconfig/network",
    "/etc/sysconfig/network/ifcfg-eth*",
    "/etc/sysconfig/network/routes",
    "/etc/sysconfig/network-scripts/ifcfg-eth*",
    "/etc/sysconfig/network-scripts/route-eth*",
    "/etc/ufw/ufw.conf",
    "/etc/waagent.conf",
    "/var/lib/hyperv/.kvp_pool_*",
    "/var/lib/dhcp/dhclient.eth0.leases",
    "/var/lib/dhclient/dhclient-eth0.leases",
    "/var/lib/wicked/lease-eth0-dhcp-ipv4.xml",
    "/var/log/azure/custom-script/handler.log",
    "/var/log/azure/run-command/handler.log",
    "/var/lib/waagent/ovf-env.xml",
    "/var/lib/waagent/*/status/*.status",
    "/var/lib/waagent/*/config/*.settings",
    "/var/lib/waagent/*/config/HandlerState",
    "/var/lib/waagent/*/config/HandlerStatus",
    "/var/lib/waagent/SharedConfig.xml",
    "/var/lib/waagent/ManagedIdentity-*.json",
    "/var/lib/waagent/waagent_status.json",
    "/var/lib/waagent/*/error.json",
    "/var/log/cloud-init*",
    "/var/log/azure/*/*",
    "/var/log/azure/*/*/*",
    "/var/log/syslog*",
    "/var/log/rsyslog*",
    "/var/log/messages*",
    "/var/log/kern*",
    "/var/log/dmesg*",
    "/var/log/dpkg*",
    "/var/log/yum*",
    "/var/log/boot*",
    "/var/log/auth*",
    "/var/log/secure*",
]

PROC_FILES = [
    "/proc/cmdline", "/proc/cpuinfo", "/proc/filesystems", "/proc/interrupts", "/proc/loadavg",
    "/proc/meminfo", "/proc/modules", "/proc/mounts", "/proc/slabinfo", "/proc/stat",
    "/proc/uptime", "/proc/version*", "/proc/vmstat",
]

NETNS_SCRIPT = """
\tconntrack -L 2>&1;
\tconntrack -S 2>&1;
\tip -4 -d -j addr show 2>&1;
\tip -4 -d -j neighbor show 2>&1;
\tip -4 -d -j route show 2>&1;
\tip -4 -d -j tcpmetrics show 2>&1;
\tip -6 -d -j addr show table all 2>&1;
\tip -6 -d -j neighbor show 2>&1;
\tip -6 -d -j route show table all 2>&1;
\tip -6 -d -j tcpmetrics show 2>&1;
\tip -d -j link show 2>&1;
\tip -d -j netconf show 2>&1;
\tip -d -j netns show 2>&1;
\tip -d -j rule show 2>&1;
\tiptables -L -vn --line-numbers 2>&1;
\tip6tables -L -vn --line-numbers 2>&1;
\tnft -jn list ruleset 2>&1;
\tss -anoempiO --cgroup 2>&1;
\tss -s 2>&1;
"""

# (label, argv, output file, append)
SYSTEM_COMMANDS = [
    ("file listings", ["find", "/dev", "/etc", "/var/lib/waagent", "/var/log", "-ls"], "file_listings.txt", False),
    ("dpkg", ["dpkg", "-l"], "dpkg.txt", False),
    ("lsblk", ["lsblk"], "diskinfo.txt", False),
    ("blkid", ["blkid"], "diskinfo.txt", True),
    ("lscpu", ["lscpu"], "lscpu.txt", False),
    ("lscpu json", ["lscpu", "-J"], "lscpu.json", False),
    ("lshw", ["lshw"], "lshw.txt", False),
    ("lshw json", ["lshw", "-json"], "lshw.json", False),
    ("lsipc", ["lsipc"], "lsipc.txt", False),
    ("lsns", ["lsns", "-J", "--output-all"], "lsns.json", False),
    ("lspci", ["lspci", "-vkPP"], "lspci.txt", False),
    ("lsscsi", ["lsscsi", "-vv"], "lsscsi.txt", False),
    ("lsvmbus", ["lsvmbus", "-vv"], "lsvmbus.txt", False),
    ("sysctl", ["sysctl", "-a"], "sysctl.txt", False),
    ("systemctl status", ["systemctl", "status", "--all", "-fr"], "systemctl-status.txt", False),
]

CONTAINER_RUNTIME_COMMANDS = [
    ("crictl version", ["crictl", "version"], "crictl_version.txt", False),
    ("crictl info", ["crictl", "info", "-o", "json"], "crictl_info.json", False),
    ("crictl images", ["crictl", "images", "-o", "json"], "crictl_images.json", False),
    ("crictl imagefsinfo", ["crictl", "imagefsinfo", "-o", "json"], "crictl_imagefsinfo.json", False),
    ("crictl pods", ["crictl", "pods", "-o", "json"], "crictl_pods.json", False),
    ("crictl ps", ["crictl", "ps", "-o", "json"], "crictl_ps.json", False),
    ("crictl stats", ["crictl", "stats", "-o", "json"], "crictl_stats.json", False),
    ("crictl statsp", ["crictl", "statsp", "-o", "json"], "crictl_statsp.json", False),
]

NETWORK_COMMANDS = [
    ("conntrack list", ["conntrack", "-L"], "conntrack.txt", False),
    ("conntrack stats", ["conntrack", "-S"], "conntrack.txt", True),
    ("ip -4 addr", ["ip", "-4", "-d", "-j", "addr", "show"], "ip_4_addr.json", False),
    ("ip -4 neighbor", ["ip", "-4", "-d", "-j", "neighbor", "show"], "ip_4_neighbor.json", False),
    ("ip -4 route", ["ip", "-4", "-d", "-j", "route", "show"], "ip_4_route.json", False),
    ("ip -4 tcpmetrics", ["ip", "-4", "-d", "-j", "tcpmetrics", "show"], "ip_4_tcpmetrics.json", False),
    ("ip -6 addr", ["ip", "-6", "-d", "-j", "addr", "show", "table", "all"], "ip_6_addr.json", False),
    ("ip -6 neighbor", ["ip", "-6", "-d", "-j", "neighbor", "show"], "ip_6_neighbor.json", False),
    ("ip -6 route", ["ip", "-6", "-d", "-j", "route", "show", "table", "all"], "ip_6_route.json", False),
    ("ip -6 tcpmetrics", ["ip", "-6", "-d", "-j", "tcpmetrics", "show"], "ip_6_tcpmetrics.json", False),
    ("ip link", ["ip", "-d", "-j", "link", "show"], "ip_link.json", False),
    ("ip netconf", ["ip", "-d", "-j", "netconf", "show"], "ip_netconf.json", False),
    ("ip netns", ["ip", "-d", "-j", "netns", "show"], "ip_netns.json", False),
    ("ip rule", ["ip", "-d", "-j", "rule", "show"], "ip_rule.json", False),
    ("iptables", ["iptables", "-L", "-vn", "--line-numbers"], "iptables.txt", False),
    ("ip6tables", ["ip6tables", "-L", "-vn", "--line-numbers"], "ip6tables.txt", False),
    ("nftables", ["nft", "-jn", "list", "ruleset"], "nftables.json", False),
    ("ss sockets", ["ss", "-anoempiO", "--cgroup"], "ss.txt", False),
    ("ss summary", ["ss", "-s"], "ss.txt", True),
    ("netns commands", ["ip", "-all", "netns", "exec", "/bin/bash", "-x", "-c", NETNS_SCRIPT],
     "ip_netns_commands.txt", False),
]


def default_producers(timeout=None):
    """The full snapshot set: system, container runtime, network, /proc and psutil metrics."""
    producers = [
        CommandProducer(label, cmd, output_name, append=append, timeout=timeout)
        for label, cmd, output_name, append in SYSTEM_COMMANDS + CONTAINER_RUNTIME_COMMANDS + NETWORK_COMMANDS
    ]
    producers.append(FileCopyProducer("proc files", PROC_FILES, "proc"))
    producers.append(TreeCopyProducer("proc net", "/proc/net", "proc/net"))
    producers.append(SystemMetricsProducer())
    return producers
